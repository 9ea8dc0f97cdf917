"""Path helpers for instance keys, preview paths and ignore patterns."""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9_]")
_UNSAFE_NAME_CHARS = re.compile(r"[^a-z0-9.]+")


def get_instance_key(root: str | None) -> str:
    """Turn a root folder such as ``/milo-pink`` into a store-safe key."""
    if not root:
        return "default"
    return _UNSAFE_KEY_CHARS.sub("_", root)


def handle_extension(path: str) -> str:
    """Map a document path to the path it is previewed and published under.

    ``/a/My Doc.docx`` -> ``/a/my-doc``, ``/a/index.docx`` -> ``/a/``,
    ``/a/data.xlsx`` -> ``/a/data.json``.
    """
    folder, sep, name = path.rpartition("/")
    folder = folder + sep

    if name.endswith(".xlsx"):
        name = name[: -len(".xlsx")] + ".json"
    if name.lower() == "index.docx":
        name = ""
    if name.endswith(".docx"):
        name = name[: name.rindex(".")]

    name = unicodedata.normalize("NFD", name.lower())
    name = "".join(c for c in name if not unicodedata.combining(c))
    name = _UNSAFE_NAME_CHARS.sub("-", name).strip("-")
    return f"{folder}{name}"


def is_file_path_with_wildcard(path: str | None, pattern: str | None) -> bool:
    if not path or not pattern:
        return False
    regex = "^" + re.escape(pattern).replace(r"\*", ".*") + "$"
    return re.match(regex, path) is not None


def is_file_pattern_matched(path: str | None, patterns: str | Iterable[str] | None) -> bool:
    """Whether ``path`` equals a pattern or lies below one. ``*`` matches anything."""
    if patterns is None or isinstance(patterns, str):
        return is_file_path_with_wildcard(path, patterns)
    return any(
        is_file_path_with_wildcard(path, p) or is_file_path_with_wildcard(path, f"{p}/*")
        for p in patterns
    )
