"""Typed, path-addressed access to one Section of a configuration document."""

from __future__ import annotations

import logging
import math
import threading
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Callable, Iterator, Mapping, TypeVar, cast

from treeconf.codecs import TYPE_KEY
from treeconf.errors import CodecError, InvalidPathError, TypeMismatchError
from treeconf.node import ConfigNode, Scalar, Section, Sequence, copy_node, key_text, to_plain
from treeconf.path import iter_keys, iter_values, join_path, put, remove, resolve, split_path

if TYPE_CHECKING:
    from treeconf.store import ConfigStore

logger = logging.getLogger(__name__)

__all__ = [
    "ConfigSection",
    "BYTE_MIN",
    "BYTE_MAX",
    "SHORT_MIN",
    "SHORT_MAX",
    "INT_MIN",
    "INT_MAX",
    "LONG_MIN",
    "LONG_MAX",
]

T = TypeVar("T")

BYTE_MIN, BYTE_MAX = -(2**7), 2**7 - 1
SHORT_MIN, SHORT_MAX = -(2**15), 2**15 - 1
INT_MIN, INT_MAX = -(2**31), 2**31 - 1
LONG_MIN, LONG_MAX = -(2**63), 2**63 - 1

_SCALAR_TYPES = (str, int, float, bool, date, datetime, bytes)


class _Missing:
    def __repr__(self) -> str:
        return "<missing>"


_MISSING: Any = _Missing()


# === Coercion ===


def _number(value: Any) -> int | float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _integer(value: Any, low: int, high: int) -> int | None:
    number = _number(value)
    if number is None:
        if isinstance(value, str):
            try:
                number = int(value.strip())
            except ValueError:
                return None
        else:
            return None
    if isinstance(number, float):
        if not math.isfinite(number):
            return None
        number = int(number)
    return number if low <= number <= high else None


def _scalar_value(node: ConfigNode | None) -> Any:
    return node.value if isinstance(node, Scalar) else None


def _as_string(node: ConfigNode | None) -> str | None:
    value = _scalar_value(node)
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return None
    return str(value)


def _as_int(node: ConfigNode | None) -> int | None:
    value = _scalar_value(node)
    return _integer(value, INT_MIN, INT_MAX) if _number(value) is not None else None


def _as_long(node: ConfigNode | None) -> int | None:
    value = _scalar_value(node)
    return _integer(value, LONG_MIN, LONG_MAX) if _number(value) is not None else None


def _as_double(node: ConfigNode | None) -> float | None:
    number = _number(_scalar_value(node))
    return float(number) if number is not None else None


def _as_boolean(node: ConfigNode | None) -> bool | None:
    value = _scalar_value(node)
    return value if isinstance(value, bool) else None


def _as_list(node: ConfigNode | None) -> list[Any] | None:
    return to_plain(node) if isinstance(node, Sequence) else None


def _is_integer(node: ConfigNode, low: int, high: int) -> bool:
    value = _scalar_value(node)
    return isinstance(value, int) and not isinstance(value, bool) and low <= value <= high


# List elements are coerced more leniently than single values: numeric
# strings count for numeric lists, "true"/"false" for boolean lists.


def _element_string(node: ConfigNode) -> str | None:
    return _as_string(node)


def _element_byte(node: ConfigNode) -> int | None:
    return _integer(_scalar_value(node), BYTE_MIN, BYTE_MAX)


def _element_short(node: ConfigNode) -> int | None:
    return _integer(_scalar_value(node), SHORT_MIN, SHORT_MAX)


def _element_int(node: ConfigNode) -> int | None:
    return _integer(_scalar_value(node), INT_MIN, INT_MAX)


def _element_long(node: ConfigNode) -> int | None:
    return _integer(_scalar_value(node), LONG_MIN, LONG_MAX)


def _element_double(node: ConfigNode) -> float | None:
    value = _scalar_value(node)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    number = _number(value)
    return float(number) if number is not None else None


def _element_boolean(node: ConfigNode) -> bool | None:
    value = _scalar_value(node)
    if isinstance(value, bool):
        return value
    if value == "true":
        return True
    if value == "false":
        return False
    return None


def _element_map(node: ConfigNode) -> dict[str, Any] | None:
    return to_plain(node) if isinstance(node, Section) else None


def _flatten(values: Mapping[Any, Any], prefix: str, separator: str) -> Iterator[tuple[str, Any]]:
    for key, value in values.items():
        path = join_path(prefix, key_text(key), separator)
        if isinstance(value, Mapping) and value:
            yield from _flatten(value, path, separator)
        else:
            yield path, value


class ConfigSection:
    """A view over one Section of a document, addressed by relative paths.

    Every path argument is relative to this section. Reads are permissive:
    missing paths, and paths that run through a scalar or list, resolve to
    the supplied default, then the defaults table, then the type's zero
    value. Writes create missing parent sections but refuse to replace a
    scalar or list that sits on the way (``InvalidPathError``).

    All access goes through the owning store's lock. Handles taken before
    ``ConfigStore.reload()`` keep pointing at the replaced tree.
    """

    def __init__(self, store: ConfigStore, node: Section, path: str) -> None:
        self._store = store
        self._node = node
        self._path = path

    # ----- Identity -----

    @property
    def name(self) -> str:
        """The last segment of this section's path ("" for the root)."""
        if not self._path:
            return ""
        return self._path.rsplit(self._separator, 1)[-1]

    @property
    def current_path(self) -> str:
        """Absolute path of this section from the document root."""
        return self._path

    @property
    def root(self) -> ConfigStore:
        """The store that owns this section."""
        return self._store

    @property
    def _lock(self) -> threading.RLock:
        return self._store._rlock

    @property
    def _separator(self) -> str:
        return self._store.options.path_separator

    # ----- Resolution helpers -----

    def _absolute(self, path: str) -> str:
        return join_path(self._path, path, self._separator)

    def _lookup(self, path: str) -> ConfigNode | None:
        """Resolve a relative path for reading; traversal failures read as missing."""
        split_path(path, self._separator)
        try:
            return resolve(self._node, path, separator=self._separator)
        except InvalidPathError:
            return None

    def _lookup_default(self, path: str) -> ConfigNode | None:
        try:
            return resolve(self._store._document.defaults, self._absolute(path), separator=self._separator)
        except InvalidPathError:
            return None

    def _present(self, node: ConfigNode, path: str, live: bool = True) -> Any:
        """Turn a node into the value handed to callers."""
        if isinstance(node, Scalar):
            return node.value
        if isinstance(node, Sequence):
            return to_plain(node)
        if TYPE_KEY in node:
            try:
                return self._store.codecs.decode(to_plain(node))
            except (ValueError, TypeError) as e:
                logger.warning("Cannot decode value at '%s': %s", self._absolute(path), e)
        if live:
            return ConfigSection(self._store, node, self._absolute(path))
        return to_plain(node)

    def _to_node(self, value: Any) -> ConfigNode:
        if isinstance(value, ConfigSection):
            return value._snapshot()
        if isinstance(value, (Scalar, Sequence, Section)):
            return copy_node(value)
        if value is None:
            return Scalar(None)
        if isinstance(value, Mapping):
            return Section({key_text(k): self._to_node(v) for k, v in value.items() if v is not None})
        if isinstance(value, (list, tuple)):
            return Sequence([self._to_node(v) for v in value])
        if isinstance(value, _SCALAR_TYPES):
            return Scalar(value)
        encoded = self._store.codecs.encode(value)
        if encoded is None:
            raise CodecError(message=f"No codec registered for {type(value).__name__}")
        return self._to_node(encoded)

    def _snapshot(self) -> Section:
        with self._lock:
            return cast(Section, copy_node(self._node))

    def _typed(
        self,
        path: str,
        coerce: Callable[[ConfigNode | None], T | None],
        default: Any,
        zero: Any,
    ) -> Any:
        with self._lock:
            value = coerce(self._lookup(path))
            if value is not None:
                return value
            if default is not _MISSING:
                return default
            value = coerce(self._lookup_default(path))
            return value if value is not None else zero

    def _typed_list(self, path: str, element: Callable[[ConfigNode], T | None]) -> list[T]:
        with self._lock:
            node = self._lookup(path)
            if node is None:
                node = self._lookup_default(path)
            if not isinstance(node, Sequence):
                return []
            result: list[T] = []
            for index, item in enumerate(node.items):
                value = element(item)
                if value is None:
                    logger.debug("Skipping element %d of '%s': %r", index, self._absolute(path), to_plain(item))
                    continue
                result.append(value)
            return result

    # ----- Generic access -----

    def get(self, path: str, default: Any = _MISSING) -> Any:
        """Return the value at ``path``.

        Scalars come back as-is, lists as plain lists, sections as
        ``ConfigSection`` handles and codec-tagged sections as decoded rich
        values. Missing paths return ``default`` if given, otherwise the
        defaults-table value, otherwise None.
        """
        with self._lock:
            node = self._lookup(path)
            if node is not None:
                return self._present(node, path)
            if default is not _MISSING:
                return default
            node = self._lookup_default(path)
            return self._present(node, path, live=False) if node is not None else None

    def get_or_raise(self, path: str, expected_type: type[T]) -> T | None:
        """Return the value at ``path`` checked against ``expected_type``.

        A missing path returns None. A stored value of a different type is a
        caller error, not a fallback case: bool never satisfies int or
        float, and int does not satisfy float.

        Raises:
            TypeMismatchError: If the stored value is not an ``expected_type``.
        """
        value = self.get(path)
        if value is None:
            return None
        mismatch = not isinstance(value, expected_type) or (
            isinstance(value, bool) and expected_type in (int, float)
        )
        if mismatch:
            raise TypeMismatchError(
                path=self._absolute(path),
                expected=getattr(expected_type, "__name__", str(expected_type)),
                actual=type(value).__name__,
            )
        return value

    def contains(self, path: str, ignore_defaults: bool = False) -> bool:
        """Whether ``path`` has a value, optionally ignoring the defaults table."""
        with self._lock:
            if self._lookup(path) is not None:
                return True
            return not ignore_defaults and self._lookup_default(path) is not None

    def is_set(self, path: str) -> bool:
        """Whether ``path`` is set in the live tree.

        With ``copy_defaults`` enabled, defaulted paths count as set.
        """
        return self.contains(path, ignore_defaults=not self._store.options.copy_defaults)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and bool(path) and self.contains(path)

    # ----- Typed getters -----

    def get_string(self, path: str, default: Any = _MISSING) -> str:
        """Any scalar rendered as a string; booleans render as true/false."""
        return self._typed(path, _as_string, default, "")

    def get_int(self, path: str, default: Any = _MISSING) -> int:
        """A number truncated to int; values outside the 32-bit range do not coerce."""
        return self._typed(path, _as_int, default, 0)

    def get_long(self, path: str, default: Any = _MISSING) -> int:
        """A number truncated to int; values outside the 64-bit range do not coerce."""
        return self._typed(path, _as_long, default, 0)

    def get_double(self, path: str, default: Any = _MISSING) -> float:
        return self._typed(path, _as_double, default, 0.0)

    def get_boolean(self, path: str, default: Any = _MISSING) -> bool:
        return self._typed(path, _as_boolean, default, False)

    def get_list(self, path: str, default: Any = _MISSING) -> list[Any]:
        return self._typed(path, _as_list, default, [])

    def get_section(self, path: str) -> ConfigSection | None:
        """The section at ``path`` as a handle, or None if it is not a section."""
        with self._lock:
            node = self._lookup(path)
            if isinstance(node, Section) and TYPE_KEY not in node:
                return ConfigSection(self._store, node, self._absolute(path))
            return None

    get_configuration_section = get_section

    def get_value(self, path: str, value_type: type[T], default: T | None = None) -> T | None:
        """A rich value decoded by the codec registered for ``value_type``.

        Scalars that already are a ``value_type`` are returned directly.
        Anything missing or undecodable returns ``default``.
        """
        with self._lock:
            node = self._lookup(path)
            if node is None:
                node = self._lookup_default(path)
            if node is None:
                return default
            if isinstance(node, Scalar):
                return node.value if isinstance(node.value, value_type) else default
            if not isinstance(node, Section):
                return default
            data = to_plain(node)
        try:
            value = self._store.codecs.decode(data, value_type)
        except (ValueError, TypeError) as e:
            logger.debug("Cannot decode '%s' as %s: %s", self._absolute(path), value_type.__name__, e)
            return default
        return value if isinstance(value, value_type) else default

    # ----- List getters -----

    def get_string_list(self, path: str) -> list[str]:
        return self._typed_list(path, _element_string)

    def get_byte_list(self, path: str) -> list[int]:
        """Integers in the signed 8-bit range; other elements are skipped."""
        return self._typed_list(path, _element_byte)

    def get_short_list(self, path: str) -> list[int]:
        """Integers in the signed 16-bit range; other elements are skipped."""
        return self._typed_list(path, _element_short)

    def get_integer_list(self, path: str) -> list[int]:
        return self._typed_list(path, _element_int)

    def get_long_list(self, path: str) -> list[int]:
        return self._typed_list(path, _element_long)

    def get_double_list(self, path: str) -> list[float]:
        return self._typed_list(path, _element_double)

    # no single-precision type in Python; kept for callers porting float lists
    get_float_list = get_double_list

    def get_boolean_list(self, path: str) -> list[bool]:
        return self._typed_list(path, _element_boolean)

    def get_map_list(self, path: str) -> list[dict[str, Any]]:
        return self._typed_list(path, _element_map)

    # ----- Type checks -----

    def _check_type(self, path: str, check: Callable[[ConfigNode], bool]) -> bool:
        with self._lock:
            node = self._lookup(path)
            return node is not None and check(node)

    def is_string(self, path: str) -> bool:
        return self._check_type(path, lambda n: isinstance(_scalar_value(n), str))

    def is_int(self, path: str) -> bool:
        return self._check_type(path, lambda n: _is_integer(n, INT_MIN, INT_MAX))

    def is_long(self, path: str) -> bool:
        return self._check_type(path, lambda n: _is_integer(n, LONG_MIN, LONG_MAX))

    def is_double(self, path: str) -> bool:
        return self._check_type(path, lambda n: isinstance(_scalar_value(n), float))

    def is_boolean(self, path: str) -> bool:
        return self._check_type(path, lambda n: isinstance(_scalar_value(n), bool))

    def is_list(self, path: str) -> bool:
        return self._check_type(path, lambda n: isinstance(n, Sequence))

    def is_section(self, path: str) -> bool:
        return self._check_type(path, lambda n: isinstance(n, Section) and TYPE_KEY not in n)

    is_configuration_section = is_section

    def is_value(self, path: str, value_type: type) -> bool:
        """Whether the value at ``path`` decodes to a ``value_type``."""
        return self.contains(path, ignore_defaults=True) and self.get_value(path, value_type) is not None

    # ----- Mutation -----

    def set(self, path: str, value: Any) -> None:
        """Set ``path`` to ``value``, creating parent sections; None removes the key.

        Mappings become sections, lists and tuples become lists, and values
        with a registered codec are stored encoded.

        Raises:
            InvalidPathError: If the path is malformed or runs through a
                scalar or list.
            CodecError: If the value is not a plain YAML type and no codec
                is registered for it.
        """
        split_path(path, self._separator)
        if value is None:
            with self._lock:
                if remove(self._node, path, separator=self._separator):
                    self._drop_comments(self._absolute(path))
            return

        node = self._to_node(value)
        with self._lock:
            put(self._node, path, node, separator=self._separator)

    def __setitem__(self, path: str, value: Any) -> None:
        self.set(path, value)

    def create_section(self, path: str, values: Mapping[Any, Any] | None = None) -> ConfigSection:
        """Create (or replace) a section at ``path`` and return a handle to it."""
        split_path(path, self._separator)
        if values is not None and not isinstance(values, Mapping):
            raise TypeError(f"Section values must be a mapping, got {type(values).__name__}")
        node = cast(Section, self._to_node(values)) if values else Section()
        with self._lock:
            put(self._node, path, node, separator=self._separator)
            return ConfigSection(self._store, node, self._absolute(path))

    # ----- Enumeration -----

    def _enumeration_root(self, path: str) -> Section | None:
        if path is None:
            raise InvalidPathError(path, "Path cannot be None")
        if path == "":
            return self._node
        node = self._lookup(path)
        return node if isinstance(node, Section) else None

    def get_keys(self, path: str = "", deep: bool = False) -> list[str]:
        """Keys of the section at ``path`` ("" for this section), in insertion order.

        With ``deep``, dotted paths of all descendants are included in
        pre-order. Paths that are missing or not sections yield no keys.
        """
        with self._lock:
            section = self._enumeration_root(path)
            if section is None:
                return []
            return list(iter_keys(section, deep=deep, separator=self._separator))

    def get_values(self, path: str = "", deep: bool = False) -> dict[str, Any]:
        """Ordered mapping of key (or dotted path) to value, as ``get`` returns them."""
        with self._lock:
            section = self._enumeration_root(path)
            if section is None:
                return {}
            base = path
            return {
                key: self._present(node, join_path(base, key, self._separator))
                for key, node in iter_values(section, deep=deep, separator=self._separator)
            }

    def __iter__(self) -> Iterator[str]:
        return iter(self.get_keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._node)

    # ----- Comments -----

    def get_comments(self, path: str) -> list[str]:
        """Comment lines written above the key at ``path``."""
        split_path(path, self._separator)
        with self._lock:
            return list(self._store._document.comments.get(self._absolute(path), []))

    def set_comments(self, path: str, lines: list[str] | None) -> None:
        """Replace the comment lines above ``path``; None or [] clears them."""
        split_path(path, self._separator)
        with self._lock:
            key = self._absolute(path)
            if lines:
                self._store._document.comments[key] = [str(line) for line in lines]
            else:
                self._store._document.comments.pop(key, None)

    def _drop_comments(self, absolute: str) -> None:
        comments = self._store._document.comments
        prefix = absolute + self._separator
        for key in [k for k in comments if k == absolute or k.startswith(prefix)]:
            del comments[key]

    # ----- Defaults -----

    def add_default(self, path: str, value: Any) -> None:
        """Record a default for ``path``; never overwrites a live value."""
        self.add_defaults({path: value})

    def add_defaults(self, defaults: Mapping[str, Any]) -> None:
        """Merge ``defaults`` (path -> value, nested mappings allowed) into the defaults table.

        With ``copy_defaults`` enabled, entries whose path is absent from the
        live tree are copied into it right away.
        """
        entries: list[tuple[str, ConfigNode]] = []
        for path, value in _flatten(defaults, "", self._separator):
            split_path(path, self._separator)
            if value is None:
                continue
            entries.append((path, self._to_node(value)))

        with self._lock:
            table = self._store._document.defaults
            for path, node in entries:
                put(table, self._absolute(path), node, separator=self._separator)
            if self._store.options.copy_defaults:
                for path, node in entries:
                    self._copy_default(path, node)

    def get_default(self, path: str) -> Any:
        """The defaults-table value for ``path``, or None."""
        with self._lock:
            node = self._lookup_default(path)
            return self._present(node, path, live=False) if node is not None else None

    def _copy_default(self, path: str, node: ConfigNode) -> None:
        try:
            if resolve(self._node, path, separator=self._separator) is not None:
                return
            put(self._node, path, copy_node(node), separator=self._separator)
        except InvalidPathError:
            logger.debug("Default for '%s' blocked by a non-section value", self._absolute(path))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} path={self._path!r}>"
