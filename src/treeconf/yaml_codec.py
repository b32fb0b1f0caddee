"""YAML document codec with header and per-key comment support.

Parsing is delegated to ``yaml.safe_load``; PyYAML drops comments, so a
line scan over the same text recovers the header block and the comment
lines that sit directly above each mapping key. Serialization walks the
tree in insertion order and formats every scalar with ``yaml.safe_dump``.
"""

from __future__ import annotations

import base64
import logging
import re
from typing import Any, cast

import yaml

from treeconf.document import ConfigDocument, DocumentOptions
from treeconf.errors import DocumentParseError
from treeconf.node import ConfigNode, Scalar, Section, Sequence, key_text, to_node
from treeconf.path import join_path

__all__ = ["YamlDocumentCodec"]

logger = logging.getLogger(__name__)

_NO_WRAP = float("inf")

_KEY_RE = re.compile(
    r"""^(?P<indent>[ ]*)
    (?P<key>"(?:[^"\\]|\\.)*"
        |'(?:[^']|'')*'
        |[^\s#'"\-?:\[\]{},&*!|>%@`][^#]*?
        |-[^\s#][^#]*?)
    [ \t]*:(?:[ \t]+(?P<value>.*))?$""",
    re.VERBOSE,
)


def _indent_of(line: str) -> int:
    return len(line) - len(line.lstrip(" "))


def _comment_text(stripped: str) -> str:
    text = stripped[1:]
    return text[1:] if text.startswith(" ") else text


def _key_text(raw: str) -> str:
    try:
        value = yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw
    return key_text(value)


def _format_scalar(value: Any) -> str:
    if isinstance(value, bytes):
        # binary values stay on one line
        return f"!!binary \"{base64.b64encode(value).decode('ascii')}\""
    if isinstance(value, str) and ("\n" in value or "\r" in value):
        text = yaml.safe_dump(value, default_style='"', width=_NO_WRAP, allow_unicode=True)
    else:
        text = yaml.safe_dump(value, width=_NO_WRAP, allow_unicode=True)
    text = text.strip()
    # plain scalars come back with an explicit document end marker
    if text.endswith("\n..."):
        text = text[: -len("\n...")].rstrip()
    return text


class _CommentScanner:
    """Collects the header and key comments of a block-style YAML text."""

    def __init__(self, separator: str) -> None:
        self._separator = separator
        self.header: list[str] = []
        self.comments: dict[str, list[str]] = {}

    def scan(self, text: str) -> None:
        # None marks a blank line inside the pending block
        pending: list[str | None] = []
        stack: list[tuple[int, str]] = []
        skip_deeper_than: int | None = None
        seen_key = False

        for line in text.splitlines():
            stripped = line.strip()
            if skip_deeper_than is not None:
                if not stripped or _indent_of(line) > skip_deeper_than:
                    continue
                skip_deeper_than = None

            if not stripped:
                pending.append(None)
                continue
            if stripped.startswith("#"):
                pending.append(_comment_text(stripped))
                continue
            if stripped == "---" or stripped.startswith("%"):
                pending = []
                continue

            if not seen_key:
                pending = self._split_header(pending)
                seen_key = True

            match = _KEY_RE.match(line)
            if match is None:
                # sequence items and flow continuations carry no tracked comments
                pending = []
                skip_deeper_than = _indent_of(line)
                continue

            indent = len(match.group("indent"))
            while stack and stack[-1][0] >= indent:
                stack.pop()
            prefix = self._separator.join(key for _, key in stack)
            key = _key_text(match.group("key"))
            path = join_path(prefix, key, self._separator)

            block = [entry for entry in pending if entry is not None]
            if block:
                self.comments[path] = block
            pending = []

            value = match.group("value")
            if not value or value.startswith("#"):
                stack.append((indent, key))
            else:
                skip_deeper_than = indent

        if not seen_key:
            self._split_header(pending, whole=True)

    def _split_header(self, pending: list[str | None], whole: bool = False) -> list[str | None]:
        """Move the leading comment block into the header.

        The header ends at the first blank line; without one (and with a key
        following) the block belongs to the first key instead.
        """
        start = 0
        while start < len(pending) and pending[start] is None:
            start += 1
        end = start
        while end < len(pending) and pending[end] is not None:
            end += 1
        if end == start:
            return pending
        if end == len(pending) and not whole:
            return pending
        self.header = [entry for entry in pending[start:end] if entry is not None]
        return pending[end:]


class YamlDocumentCodec:
    """Reads and writes ConfigDocuments as block-style YAML."""

    def parse(self, text: str, options: DocumentOptions, source: str | None = None) -> ConfigDocument:
        """Parse YAML text into a document that shares ``options``.

        Raises:
            DocumentParseError: If the text is not valid YAML or its top
                level is not a mapping.
        """
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise DocumentParseError(message=f"Invalid YAML: {e}", source=source, cause=e) from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise DocumentParseError(
                message=f"Top level of the document must be a mapping, got {type(data).__name__}",
                source=source,
            )

        root = cast(Section, to_node(data))
        document = ConfigDocument(root=root, options=options)

        if options.parse_comments or options.copy_header:
            scanner = _CommentScanner(options.path_separator)
            scanner.scan(text)
            if options.parse_comments:
                document.comments = scanner.comments
            if options.copy_header:
                options.header = "\n".join(scanner.header)

        logger.debug(
            "Parsed document %s: %d top-level keys, %d commented keys",
            source or "<string>",
            len(root),
            len(document.comments),
        )
        return document

    def serialize(self, document: ConfigDocument) -> str:
        """Render a document as YAML text ending with a newline."""
        options = document.options
        lines: list[str] = []
        if options.copy_header and options.header:
            for header_line in options.header.splitlines():
                lines.append(f"# {header_line}" if header_line else "#")
            lines.append("")

        comments = document.comments if options.parse_comments else None
        self._emit_section(document.root, 0, "", lines, comments, options)
        if not lines:
            return ""
        return "\n".join(lines) + "\n"

    def _emit_section(
        self,
        section: Section,
        indent: int,
        prefix: str | None,
        lines: list[str],
        comments: dict[str, list[str]] | None,
        options: DocumentOptions,
    ) -> None:
        pad = " " * indent
        for key, child in section.items():
            path = join_path(prefix, key, options.path_separator) if prefix is not None else None
            if comments is not None and path is not None:
                for comment in comments.get(path, []):
                    lines.append(f"{pad}# {comment}" if comment else f"{pad}#")

            head = f"{pad}{_format_scalar(key)}:"
            if isinstance(child, Section):
                if len(child) == 0:
                    lines.append(f"{head} {{}}")
                else:
                    lines.append(head)
                    self._emit_section(child, indent + options.indent, path, lines, comments, options)
            elif isinstance(child, Sequence):
                if len(child) == 0:
                    lines.append(f"{head} []")
                else:
                    lines.append(head)
                    self._emit_sequence(child, indent + options.indent, lines, options)
            else:
                lines.append(f"{head} {_format_scalar(child.value)}")

    def _emit_sequence(
        self,
        sequence: Sequence,
        indent: int,
        lines: list[str],
        options: DocumentOptions,
    ) -> None:
        pad = " " * indent
        for item in sequence.items:
            if isinstance(item, Scalar):
                lines.append(f"{pad}- {_format_scalar(item.value)}")
                continue
            if len(item) == 0:
                lines.append(f"{pad}- {{}}" if isinstance(item, Section) else f"{pad}- []")
                continue
            nested: list[str] = []
            self._emit_item(item, indent + 2, nested, options)
            nested[0] = f"{pad}- {nested[0].lstrip()}"
            lines.extend(nested)

    def _emit_item(self, item: ConfigNode, indent: int, lines: list[str], options: DocumentOptions) -> None:
        if isinstance(item, Section):
            self._emit_section(item, indent, None, lines, None, options)
        elif isinstance(item, Sequence):
            self._emit_sequence(item, indent, lines, options)
