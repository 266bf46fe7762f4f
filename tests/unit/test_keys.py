"""
Tests for object naming.
"""

import pytest

from certstore.storage.keys import (
    is_lock_name,
    list_prefix,
    lock_name,
    object_name,
    strip_prefix,
)


class TestObjectName:
    """Tests for object_name()."""

    @pytest.mark.parametrize(
        "prefix,key,expected",
        [
            ("", "test.key", "test.key"),
            ("acme", "test.key", "acme/test.key"),
            ("//acme//", "//test.key", "acme/test.key"),
            ("acme/", "certs/example.com/example.com.crt", "acme/certs/example.com/example.com.crt"),
            ("", "/test.key/", "test.key"),
            ("a/b", "c", "a/b/c"),
        ],
    )
    def test_object_name(self, prefix, key, expected):
        """Separators are trimmed on both sides of prefix and key."""
        assert object_name(prefix, key) == expected

    def test_pure(self):
        """Same inputs always give the same name."""
        assert object_name("acme", "k") == object_name("acme", "k")

    def test_lock_name(self):
        """Lease objects sit next to the payload with a .lock suffix."""
        assert lock_name("acme", "test.key") == "acme/test.key.lock"
        assert is_lock_name("acme/test.key.lock")
        assert not is_lock_name("acme/test.key")


class TestListPrefix:
    """Tests for list_prefix() and strip_prefix()."""

    def test_root(self):
        assert list_prefix("acme") == "acme/"
        assert list_prefix("") == ""

    def test_single_separator(self):
        """Separators around prefix and directory never double up."""
        assert list_prefix("//acme//") == "acme/"
        assert list_prefix("acme/", "/a/") == "acme/a/"
        assert list_prefix("/", "/") == ""

    def test_directory(self):
        """A directory never matches siblings sharing its leading characters."""
        assert list_prefix("acme", "a") == "acme/a/"
        assert list_prefix("", "a/") == "a/"

    def test_strip_prefix(self):
        assert strip_prefix("acme", "acme/a/b") == "a/b"
        assert strip_prefix("//acme/", "acme/a/b") == "a/b"
        assert strip_prefix("", "a/b") == "a/b"

    def test_strip_prefix_outside(self):
        """Objects outside the prefix have no logical key."""
        assert strip_prefix("acme", "other/a") is None
        assert strip_prefix("acme", "acme-old/a") is None
