"""Dotted-path parsing and resolution against a Section tree."""

from __future__ import annotations

from typing import Any, Iterator, cast

from treeconf.codecs import TYPE_KEY
from treeconf.errors import InvalidPathError
from treeconf.node import ConfigNode, Section

__all__ = [
    "DEFAULT_SEPARATOR",
    "split_path",
    "join_path",
    "resolve",
    "resolve_parent",
    "put",
    "remove",
    "iter_keys",
    "iter_values",
]

DEFAULT_SEPARATOR = "."


def split_path(path: Any, separator: str = DEFAULT_SEPARATOR) -> list[str]:
    """Split a path string into its non-empty segments.

    Raises:
        InvalidPathError: If path is None, not a string, empty, or contains
            an empty segment (leading, trailing or doubled separator).
    """
    if path is None:
        raise InvalidPathError(path, "Path cannot be None")
    if not isinstance(path, str):
        raise InvalidPathError(path, "Path must be a string")
    if path == "":
        raise InvalidPathError(path, "Path cannot be empty")
    segments = path.split(separator)
    if any(segment == "" for segment in segments):
        raise InvalidPathError(path, "Path contains an empty segment")
    return segments


def join_path(prefix: str, key: str, separator: str = DEFAULT_SEPARATOR) -> str:
    """Join a (possibly empty) prefix and a key."""
    return f"{prefix}{separator}{key}" if prefix else key


def _descend(
    root: Section,
    segments: list[str],
    path: str,
    create_missing: bool,
) -> Section | None:
    current = root
    for segment in segments:
        child = current.get(segment)
        if child is None:
            if not create_missing:
                return None
            child = Section()
            current.put(segment, child)
        elif not isinstance(child, Section):
            raise InvalidPathError(path, f"Cannot traverse through non-section at '{segment}'")
        current = child
    return current


def resolve(
    root: Section,
    path: str,
    create_missing: bool = False,
    separator: str = DEFAULT_SEPARATOR,
) -> ConfigNode | None:
    """Resolve a path to its node, or None when any part of it is absent.

    With ``create_missing`` every missing intermediate key is created as an
    empty Section; the final segment is only looked up, never created.

    Raises:
        InvalidPathError: If the path is malformed or an intermediate
            segment names a scalar or list.
    """
    segments = split_path(path, separator)
    parent = _descend(root, segments[:-1], path, create_missing)
    if parent is None:
        return None
    return parent.get(segments[-1])


def resolve_parent(
    root: Section,
    path: str,
    create_missing: bool = False,
    separator: str = DEFAULT_SEPARATOR,
) -> tuple[Section | None, str]:
    """Resolve the Section that holds the final segment of ``path``."""
    segments = split_path(path, separator)
    return _descend(root, segments[:-1], path, create_missing), segments[-1]


def put(root: Section, path: str, node: ConfigNode, separator: str = DEFAULT_SEPARATOR) -> None:
    """Insert or replace the node at ``path``, creating parent sections."""
    segments = split_path(path, separator)
    parent = cast(Section, _descend(root, segments[:-1], path, create_missing=True))
    parent.put(segments[-1], node)


def remove(root: Section, path: str, separator: str = DEFAULT_SEPARATOR) -> bool:
    """Remove the key at ``path``. Returns False if nothing was there."""
    parent, key = resolve_parent(root, path, create_missing=False, separator=separator)
    if parent is None:
        return False
    return parent.remove(key)


def iter_values(
    section: Section,
    deep: bool = False,
    prefix: str = "",
    separator: str = DEFAULT_SEPARATOR,
) -> Iterator[tuple[str, ConfigNode]]:
    """Yield ``(path, node)`` pairs in insertion order.

    With ``deep`` the walk is pre-order: a Section's own path is yielded
    before the paths of its descendants. Codec-tagged sections are yielded
    as single values and not entered.
    """
    for key, child in section.items():
        child_path = join_path(prefix, key, separator)
        yield child_path, child
        if deep and isinstance(child, Section) and TYPE_KEY not in child:
            yield from iter_values(child, deep=True, prefix=child_path, separator=separator)


def iter_keys(
    section: Section,
    deep: bool = False,
    prefix: str = "",
    separator: str = DEFAULT_SEPARATOR,
) -> Iterator[str]:
    """Yield the keys (or, with ``deep``, dotted descendant paths) of a Section."""
    for child_path, _ in iter_values(section, deep=deep, prefix=prefix, separator=separator):
        yield child_path
