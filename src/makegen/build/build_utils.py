"""Build utilities for Makegen.

Helpers for turning project-relative paths into the logical, placeholder
rooted paths used inside the generated Makefile.
"""

import posixpath
import re


def normalize_filename(path: str) -> str:
    """Normalize a project path to forward slashes without `.` segments.

    Example:
        >>> normalize_filename("lib\\\\foo/./bar.c")
        'lib/foo/bar.c'
        >>> normalize_filename("")
        ''
    """
    if not path:
        return ""
    normalized = posixpath.normpath(path.replace("\\", "/"))
    return "" if normalized == "." else normalized


def join_path(*parts: str) -> str:
    """Join logical path segments, skipping empty ones."""
    return "/".join(part.strip("/") for part in parts if part and part.strip("/"))


def directory_of(path: str) -> str:
    """Directory part of a normalized relative path ("" at top level)."""
    return posixpath.dirname(normalize_filename(path))


def replace_extension(path: str, extension: str) -> str:
    root, _ = posixpath.splitext(path)
    return root + extension


def macro_prefix(name: str) -> str:
    """Make variable prefix for a module name (e.g. "foo-bar" -> "FOO_BAR")."""
    return re.sub(r"[^A-Za-z0-9]", "_", name).upper()
