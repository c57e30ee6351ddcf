"""
Tests for stable identifier extraction and placeholder urls.
"""
import pytest

from app.identifiers import (
    author_handle,
    extract,
    is_author_handle,
    is_placeholder,
    is_stable_id,
    make_placeholder,
    parse_placeholder,
    source_url,
)

UUID = "22460adb-aa2b-421f-8b7a-ba3cba8703af"


class TestExtract:
    """Test identifier extraction."""

    def test_extract_from_source_url(self):
        assert extract(f"https://example.com/imagine/post/{UUID}") == UUID

    def test_extract_no_match(self):
        assert extract("https://example.com/other/path") is None

    @pytest.mark.parametrize("url", [
        f"https://grok.com/imagine/post/{UUID}?source=share",
        f"https://grok.com/imagine/post/{UUID}/",
        f"https://grok.com/imagine/post/{UUID}#top",
        f"https://grok.com/imagine/post/{UUID}a",
        f"https://grok.com/imagine/post/{UUID}-extra",
    ])
    def test_extract_with_suffix(self, url):
        """Test the identifier is the first 36 characters after post/, whatever follows."""
        assert extract(url) == UUID

    @pytest.mark.parametrize("url", [
        "",
        "post/",
        "https://grok.com/imagine/post/22460adb",
        f"https://grok.com/imagine/post/{UUID.upper()}",
        f"https://grok.com/imagine/posts/{UUID}x",
    ])
    def test_extract_rejects_wrong_shape(self, url):
        assert extract(url) is None

    @pytest.mark.parametrize("value", [None, 42, b"post/" + UUID.encode(), ["post/" + UUID]])
    def test_extract_non_string(self, value):
        """Test malformed input is a miss, not an error."""
        assert extract(value) is None

    def test_extract_is_deterministic(self):
        url = f"https://grok.com/imagine/post/{UUID}"
        assert {extract(url) for _ in range(5)} == {UUID}

    def test_is_stable_id(self):
        assert is_stable_id(UUID)
        assert not is_stable_id("7b0c3f52-legacy")
        assert not is_stable_id(None)

    def test_source_url(self):
        assert source_url(UUID) == f"https://grok.com/imagine/post/{UUID}"
        assert extract(source_url(UUID)) == UUID
        assert source_url(UUID, "https://mirror.test/p/{id}") == f"https://mirror.test/p/{UUID}"


class TestPlaceholders:
    """Test migration placeholder urls."""

    def test_make_placeholder(self):
        url = f"https://grok.com/imagine/post/{UUID}"
        placeholder = make_placeholder("legacy-1", url)

        assert placeholder == f"TEMP_MIGRATE_legacy-1|{url}"
        assert is_placeholder(placeholder)
        assert not is_placeholder(url)

    def test_parse_placeholder(self):
        url = f"https://grok.com/imagine/post/{UUID}"
        assert parse_placeholder(make_placeholder("legacy-1", url)) == ("legacy-1", url)

    def test_parse_legacy_placeholder(self):
        """Test placeholders carrying only the old key."""
        assert parse_placeholder(f"TEMP_MIGRATE_{UUID}") == (UUID, None)

    def test_custom_prefix(self):
        placeholder = make_placeholder("old", "https://x.test/post/1", prefix="MOVING_")
        assert is_placeholder(placeholder, prefix="MOVING_")
        assert not is_placeholder(placeholder)
        assert parse_placeholder(placeholder, prefix="MOVING_") == ("old", "https://x.test/post/1")

    def test_is_placeholder_non_string(self):
        assert not is_placeholder(None)

    def test_parse_with_known_old_id(self):
        """Test an old id containing the separator is stripped whole."""
        url = f"https://grok.com/imagine/post/{UUID}"
        placeholder = make_placeholder("legacy|1", url)

        assert parse_placeholder(placeholder, old_id="legacy|1") == ("legacy|1", url)
        assert parse_placeholder("TEMP_MIGRATE_legacy|1", old_id="legacy|1") == ("legacy|1", None)


class TestAuthorHandles:
    """Test public author handles."""

    def test_handle_is_stable(self):
        assert author_handle("client_a") == author_handle("client_a")
        assert is_author_handle(author_handle("client_a"))

    def test_handle_hides_token(self):
        handle = author_handle("alice_secret")
        assert "alice" not in handle
        assert handle != author_handle("bob_secret")

    def test_handle_depends_on_key(self):
        assert author_handle("client_a", key="one") != author_handle("client_a", key="two")

    def test_no_token_no_handle(self):
        assert author_handle(None) is None
        assert author_handle("") is None

    def test_is_author_handle(self):
        assert not is_author_handle("client_a")
        assert not is_author_handle(None)
