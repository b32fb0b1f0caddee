"""Document model: the live tree, the defaults table, comments and options."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field, field_validator

from treeconf.node import Section

__all__ = ["DocumentOptions", "ConfigDocument", "DocumentCodec"]


class DocumentOptions(BaseModel):
    """Per-document options, validated on construction and on assignment."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    copy_defaults: bool = False
    header: str = ""
    copy_header: bool = True
    parse_comments: bool = True
    path_separator: str = Field(default=".", min_length=1, max_length=1)
    indent: int = Field(default=2, ge=2, le=9)

    @field_validator("path_separator")
    @classmethod
    def _separator_not_blank(cls, v: str) -> str:
        if v.isspace():
            raise ValueError("path_separator cannot be whitespace")
        return v


@dataclass
class ConfigDocument:
    """The root Section plus everything the codec reads and writes alongside it."""

    root: Section = field(default_factory=Section)
    defaults: Section = field(default_factory=Section)
    comments: dict[str, list[str]] = field(default_factory=dict)
    options: DocumentOptions = field(default_factory=DocumentOptions)


class DocumentCodec(Protocol):
    """Converts between backing-file text and a ConfigDocument."""

    def parse(self, text: str, options: DocumentOptions, source: str | None = None) -> ConfigDocument: ...

    def serialize(self, document: ConfigDocument) -> str: ...
