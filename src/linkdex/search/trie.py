"""Character trie mapping title prefixes to catalog positions."""

from __future__ import annotations

from typing import Dict, FrozenSet, List, Optional, Set


class TrieNode:
    __slots__ = ("children", "positions", "terminal_positions")

    def __init__(self) -> None:
        self.children: Dict[str, TrieNode] = {}
        # Every position whose title passes through this node.
        self.positions: Set[int] = set()
        # Positions whose complete title ends here.
        self.terminal_positions: Set[int] = set()


class PrefixTrie:
    """Prefix trie over lower-cased titles.

    Traversals are iterative so very long titles cannot exhaust the stack.
    """

    def __init__(self, case_sensitive: bool = False) -> None:
        self.root = TrieNode()
        self.case_sensitive = case_sensitive

    def _process(self, word: str) -> str:
        return word if self.case_sensitive else word.lower()

    def _walk(self, prefix: str) -> Optional[TrieNode]:
        current = self.root
        for char in self._process(prefix):
            current = current.children.get(char)
            if current is None:
                return None
        return current

    def insert(self, title: str, position: int) -> None:
        current = self.root
        for char in self._process(title):
            child = current.children.get(char)
            if child is None:
                child = current.children[char] = TrieNode()
            current = child
            current.positions.add(position)
        current.terminal_positions.add(position)

    def delete(self, title: str, position: int) -> bool:
        """Remove ``position`` under ``title``, pruning emptied nodes toward the root."""
        processed = self._process(title)
        path: List[TrieNode] = [self.root]
        current = self.root
        for char in processed:
            current = current.children.get(char)
            if current is None:
                return False
            path.append(current)

        if position not in current.terminal_positions:
            return False
        current.terminal_positions.discard(position)

        for node in path[1:]:
            node.positions.discard(position)

        for depth in range(len(path) - 1, 0, -1):
            node = path[depth]
            if node.positions or node.children:
                break
            del path[depth - 1].children[processed[depth - 1]]
        return True

    def prefix_lookup(self, prefix: str) -> Set[int]:
        """Positions of every title starting with ``prefix``."""
        node = self._walk(prefix)
        if node is None:
            return set()
        if node is self.root:
            return self.collect("")
        return set(node.positions)

    def find_prefix(self, prefix: str, exact: bool = False) -> FrozenSet[int]:
        """Like ``prefix_lookup``; with ``exact`` only titles equal to ``prefix``."""
        node = self._walk(prefix)
        if node is None:
            return frozenset()
        if exact:
            return frozenset(node.terminal_positions)
        return frozenset(self.prefix_lookup(prefix))

    def collect(self, prefix: str) -> Set[int]:
        """Collect positions of complete titles below ``prefix``."""
        start = self._walk(prefix)
        results: Set[int] = set()
        if start is None:
            return results
        stack = [start]
        while stack:
            node = stack.pop()
            results.update(node.terminal_positions)
            stack.extend(node.children.values())
        return results

    def __bool__(self) -> bool:
        return bool(self.root.children) or bool(self.root.terminal_positions)
