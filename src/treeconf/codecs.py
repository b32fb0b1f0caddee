"""Pluggable codecs for rich values stored inside the configuration tree.

A rich value is kept in the tree as a Section whose first key is ``==``
(the type name) followed by the codec's encoded fields::

    spawn:
      ==: location
      world: overworld
      x: 10.5
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, ValidationError

from treeconf.errors import CodecError

__all__ = ["TYPE_KEY", "ValueCodec", "ModelCodec", "CodecRegistry"]

logger = logging.getLogger(__name__)

TYPE_KEY = "=="

M = TypeVar("M", bound=BaseModel)


@runtime_checkable
class ValueCodec(Protocol):
    """Converts one Python type to and from a plain mapping."""

    type_name: str
    value_type: type

    def encode(self, value: Any) -> dict[str, Any]: ...

    def decode(self, data: dict[str, Any]) -> Any: ...


class ModelCodec(Generic[M]):
    """Codec for a pydantic model class.

    Encodes with ``model_dump(mode="json")`` and decodes with
    ``model_validate``; a pydantic ``ValidationError`` on decode is turned
    into ``ValueError`` so callers see one failure type for all codecs.
    """

    def __init__(self, model_cls: type[M], type_name: str | None = None) -> None:
        self.value_type: type = model_cls
        self.type_name = type_name or model_cls.__name__.lower()
        self._model_cls = model_cls

    def encode(self, value: Any) -> dict[str, Any]:
        if not isinstance(value, self._model_cls):
            raise CodecError(message=f"Codec '{self.type_name}' cannot encode {type(value).__name__}")
        return value.model_dump(mode="json")

    def decode(self, data: dict[str, Any]) -> M:
        try:
            return self._model_cls.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Invalid data for '{self.type_name}': {e}") from e

    def __repr__(self) -> str:
        return f"ModelCodec({self._model_cls.__name__}, type_name={self.type_name!r})"


class CodecRegistry:
    """Thread-safe registry of value codecs, looked up by type or by name."""

    def __init__(self, codecs: list[ValueCodec] | None = None) -> None:
        self._by_name: dict[str, ValueCodec] = {}
        self._lock = threading.Lock()
        for codec in codecs or []:
            self.register(codec)

    def register(self, codec: ValueCodec) -> None:
        """Register a codec.

        Raises:
            CodecError: If the type name is empty or already taken.
        """
        name = getattr(codec, "type_name", None)
        if not name or not isinstance(name, str):
            raise CodecError(message="Codec type_name must be a non-empty string")
        with self._lock:
            if name in self._by_name:
                raise CodecError(message=f"Codec already registered: {name}")
            self._by_name[name] = codec
        logger.debug("Registered codec %r for %s", name, codec.value_type.__name__)

    def unregister(self, type_name: str) -> bool:
        """Remove a codec by name. Returns False if it was not registered."""
        with self._lock:
            return self._by_name.pop(type_name, None) is not None

    def for_name(self, type_name: str) -> ValueCodec | None:
        with self._lock:
            return self._by_name.get(type_name)

    def for_type(self, value_type: type) -> ValueCodec | None:
        """Find the codec for a type, walking its MRO so subclasses match."""
        with self._lock:
            codecs = list(self._by_name.values())
        for klass in getattr(value_type, "__mro__", (value_type,)):
            for codec in codecs:
                if codec.value_type is klass:
                    return codec
        return None

    def names(self) -> list[str]:
        with self._lock:
            return list(self._by_name)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, str):
            return self.for_name(item) is not None
        if isinstance(item, type):
            return self.for_type(item) is not None
        return False

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_name)

    def encode(self, value: Any) -> dict[str, Any] | None:
        """Encode a value into its tagged mapping, or None if no codec handles it."""
        codec = self.for_type(type(value))
        if codec is None:
            return None
        data = codec.encode(value)
        if not isinstance(data, dict):
            raise CodecError(message=f"Codec '{codec.type_name}' must encode to a mapping")
        return {TYPE_KEY: codec.type_name, **data}

    def decode(self, data: dict[str, Any], value_type: type | None = None) -> Any:
        """Decode a tagged mapping.

        When ``value_type`` is given and the mapping carries no tag, the
        codec for that type is used. Raises ValueError if the mapping cannot
        be decoded, including an unknown tag.
        """
        tag = data.get(TYPE_KEY)
        if tag is not None:
            codec = self.for_name(str(tag))
            if codec is None:
                logger.warning("No codec registered for tag %r", tag)
                raise ValueError(f"Unknown codec tag: {tag!r}")
        elif value_type is not None:
            codec = self.for_type(value_type)
            if codec is None:
                raise ValueError(f"No codec registered for {value_type.__name__}")
        else:
            raise ValueError("Mapping carries no codec tag")
        fields = {k: v for k, v in data.items() if k != TYPE_KEY}
        return codec.decode(fields)
