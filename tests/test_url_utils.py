from linkdex.url_utils import (
    NormalizedLink,
    extract_external_id,
    is_http_url,
    normalize_link,
    strip_redirect_wrapper,
)


def test_normalize_link_strips_redirect_wrapper_and_tracking():
    raw = (
        "https://www.google.com/url?q=https://mega.nz/folder/AbC123%23key"
        "&sa=D&source=editors&ust=1700000000"
    )
    result = normalize_link(raw)
    assert result.link == "https://mega.nz/folder/AbC123#key"
    assert result.external_id == "AbC123"


def test_normalize_link_passes_through_unwrapped_links():
    result = normalize_link("https://example.com/some%20page")
    assert result == NormalizedLink(link="https://example.com/some page", external_id=None)


def test_normalize_link_keeps_query_on_unwrapped_links():
    result = normalize_link("https://example.com/list?a=1&b=2")
    assert result.link == "https://example.com/list?a=1&b=2"


def test_normalize_link_external_id_runs_to_end_without_fragment():
    result = normalize_link("https://mega.nz/folder/XYZ789")
    assert result.external_id == "XYZ789"


def test_normalize_link_is_total():
    assert normalize_link(None) == NormalizedLink(link="")
    assert normalize_link("") == NormalizedLink(link="")
    assert normalize_link(42) == NormalizedLink(link="")
    # Malformed percent escapes are left as-is rather than raising.
    assert normalize_link("https://example.com/%zz").link == "https://example.com/%zz"


def test_custom_prefixes_and_segments():
    result = normalize_link(
        "https://redirect.example/?to=https://files.example/share/tok-1#frag&x=1",
        prefixes=("https://redirect.example/?to=",),
        segments=("share",),
    )
    assert result.link == "https://files.example/share/tok-1#frag"
    assert result.external_id == "tok-1"


def test_strip_redirect_wrapper_only_applies_to_known_prefix():
    assert strip_redirect_wrapper("https://a.example/?q=1&b=2") == "https://a.example/?q=1&b=2"


def test_extract_external_id_without_segments():
    assert extract_external_id("https://mega.nz/folder/abc", segments=()) is None


def test_is_http_url():
    assert is_http_url("https://example.com/doc.pdf")
    assert not is_http_url("ftp://example.com/doc.pdf")
    assert not is_http_url("")
