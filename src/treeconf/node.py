"""In-memory configuration tree: scalars, sequences and sections."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Union

__all__ = [
    "Scalar",
    "Sequence",
    "Section",
    "ConfigNode",
    "to_node",
    "to_plain",
    "copy_node",
    "key_text",
]


@dataclass(frozen=True)
class Scalar:
    """A leaf value: string, number, boolean or a YAML-native date."""

    value: Any


@dataclass
class Sequence:
    """An ordered list of child nodes."""

    items: list[ConfigNode] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[ConfigNode]:
        return iter(self.items)


class Section:
    """A node with uniquely named children, kept in insertion order.

    Replacing an existing key keeps its position; removing and re-adding
    moves it to the end.
    """

    __slots__ = ("_children",)

    def __init__(self, children: Mapping[str, ConfigNode] | None = None) -> None:
        self._children: dict[str, ConfigNode] = dict(children or {})

    def get(self, key: str) -> ConfigNode | None:
        return self._children.get(key)

    def put(self, key: str, node: ConfigNode) -> None:
        self._children[key] = node

    def remove(self, key: str) -> bool:
        return self._children.pop(key, None) is not None

    def keys(self) -> list[str]:
        return list(self._children)

    def items(self) -> list[tuple[str, ConfigNode]]:
        return list(self._children.items())

    def __contains__(self, key: object) -> bool:
        return key in self._children

    def __len__(self) -> int:
        return len(self._children)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._children))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Section):
            return NotImplemented
        return list(self._children.items()) == list(other._children.items())

    def __repr__(self) -> str:
        return f"Section({self._children!r})"


ConfigNode = Union[Scalar, Sequence, Section]


def key_text(key: Any) -> str:
    """Render a mapping key as a string, spelling booleans and null the YAML way."""
    if isinstance(key, bool):
        return "true" if key else "false"
    if key is None:
        return "null"
    return str(key)


def to_node(value: Any) -> ConfigNode:
    """Convert a plain Python value into a tree node.

    Mappings become Sections (keys are stringified, None values dropped),
    lists and tuples become Sequences, anything else is wrapped as a Scalar.
    Existing nodes are deep-copied so the tree never aliases caller-owned
    structures.
    """
    if isinstance(value, (Scalar, Sequence, Section)):
        return copy_node(value)
    if isinstance(value, Mapping):
        return Section({key_text(k): to_node(v) for k, v in value.items() if v is not None})
    if isinstance(value, (list, tuple)):
        return Sequence([to_node(v) for v in value])
    return Scalar(value)


def to_plain(node: ConfigNode) -> Any:
    """Convert a node back into plain dicts, lists and scalars."""
    if isinstance(node, Scalar):
        return node.value
    if isinstance(node, Sequence):
        return [to_plain(item) for item in node.items]
    return {key: to_plain(child) for key, child in node.items()}


def copy_node(node: ConfigNode) -> ConfigNode:
    """Deep-copy a node. Scalars are immutable and shared."""
    if isinstance(node, Scalar):
        return node
    if isinstance(node, Sequence):
        return Sequence([copy_node(item) for item in node.items])
    return Section({key: copy_node(child) for key, child in node.items()})

