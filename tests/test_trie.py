from linkdex.search.trie import PrefixTrie


def test_prefix_lookup_is_case_insensitive():
    trie = PrefixTrie()
    trie.insert("Apple Pie", 0)
    trie.insert("Apricot", 1)
    trie.insert("Banana", 2)

    assert trie.prefix_lookup("ap") == {0, 1}
    assert trie.prefix_lookup("APP") == {0}
    assert trie.prefix_lookup("x") == set()


def test_empty_prefix_returns_everything():
    trie = PrefixTrie()
    trie.insert("One", 0)
    trie.insert("Two", 1)
    assert trie.prefix_lookup("") == {0, 1}


def test_delete_prunes_sole_path():
    trie = PrefixTrie()
    trie.insert("apple", 0)

    assert trie.delete("apple", 0) is True
    assert trie.prefix_lookup("app") == set()
    assert trie.root.children == {}
    assert not trie


def test_delete_keeps_shared_prefix_nodes():
    trie = PrefixTrie()
    trie.insert("apple", 0)
    trie.insert("apply", 1)

    assert trie.delete("apple", 0) is True
    assert trie.prefix_lookup("app") == {1}
    assert "e" not in trie.root.children["a"].children["p"].children["p"].children["l"].children


def test_delete_unknown_title_or_position():
    trie = PrefixTrie()
    trie.insert("apple", 0)

    assert trie.delete("apricot", 0) is False
    assert trie.delete("app", 0) is False
    assert trie.delete("apple", 7) is False
    assert trie.prefix_lookup("apple") == {0}


def test_find_prefix_exact_and_collect():
    trie = PrefixTrie()
    trie.insert("app", 0)
    trie.insert("apple", 1)

    assert trie.find_prefix("app", exact=True) == frozenset({0})
    assert trie.find_prefix("app") == frozenset({0, 1})
    assert trie.collect("ap") == {0, 1}
    assert trie.collect("zz") == set()


def test_collect_handles_very_long_titles():
    trie = PrefixTrie()
    long_title = "a" * 5000
    trie.insert(long_title, 3)
    assert trie.collect("a") == {3}
    assert trie.delete(long_title, 3) is True
    assert not trie
