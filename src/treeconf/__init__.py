"""treeconf - Hierarchical, typed configuration store backed by YAML files."""

from __future__ import annotations

# Store
from treeconf.store import ConfigStore
from treeconf.section import ConfigSection
from treeconf.folder import ConfigFolder

# Document model
from treeconf.document import ConfigDocument, DocumentCodec, DocumentOptions
from treeconf.node import ConfigNode, Scalar, Section, Sequence
from treeconf.yaml_codec import YamlDocumentCodec

# Codecs
from treeconf.codecs import TYPE_KEY, CodecRegistry, ModelCodec, ValueCodec

# Errors
from treeconf.errors import (
    CodecError,
    ConfigIOError,
    DocumentParseError,
    ErrorCodes,
    InvalidPathError,
    TreeConfError,
    TypeMismatchError,
)

__version__ = "0.1.0"

__all__ = [
    # Store
    "ConfigStore",
    "ConfigSection",
    "ConfigFolder",
    # Document model
    "ConfigDocument",
    "DocumentCodec",
    "DocumentOptions",
    "ConfigNode",
    "Scalar",
    "Section",
    "Sequence",
    "YamlDocumentCodec",
    # Codecs
    "TYPE_KEY",
    "CodecRegistry",
    "ModelCodec",
    "ValueCodec",
    # Errors
    "ErrorCodes",
    "TreeConfError",
    "InvalidPathError",
    "TypeMismatchError",
    "ConfigIOError",
    "DocumentParseError",
    "CodecError",
]
