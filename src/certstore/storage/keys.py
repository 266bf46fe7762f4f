"""
Object Naming

Maps logical keys (what the certificate manager asks for) to object names in
the bucket and back. All functions here are pure.

Naming Convention:
    {prefix}/{key}          stored payload
    {prefix}/{key}.lock     lease object for the key
"""

from typing import Optional

LOCK_SUFFIX = ".lock"
SEPARATOR = "/"


def object_name(prefix: str, key: str) -> str:
    """
    Build the object name for a logical key.

    Leading and trailing separators are trimmed from both the prefix and the
    key; an empty prefix yields the trimmed key alone.

    Examples:
        object_name("acme", "test.key")      -> "acme/test.key"
        object_name("//acme//", "//test.key") -> "acme/test.key"
        object_name("", "test.key")          -> "test.key"
    """
    prefix = prefix.strip(SEPARATOR)
    key = key.strip(SEPARATOR)
    if not prefix:
        return key
    return f"{prefix}{SEPARATOR}{key}"


def lock_name(prefix: str, key: str) -> str:
    """Object name of the lease object guarding a logical key."""
    return object_name(prefix, key) + LOCK_SUFFIX


def is_lock_name(name: str) -> bool:
    return name.endswith(LOCK_SUFFIX)


def list_prefix(prefix: str, directory: str = "") -> str:
    """
    Object-name prefix under which a logical directory's objects live.

    Always ends with a separator unless both prefix and directory are empty,
    so that "a" never matches "ab/...".
    """
    parts = (prefix.strip(SEPARATOR), directory.strip(SEPARATOR))
    base = SEPARATOR.join(part for part in parts if part)
    return f"{base}{SEPARATOR}" if base else ""


def strip_prefix(prefix: str, name: str) -> Optional[str]:
    """
    Turn an object name back into a logical key.

    Returns None if the object does not live under the prefix.
    """
    root = list_prefix(prefix)
    if not name.startswith(root):
        return None
    return name[len(root):]
