"""ConfigStore: a configuration tree bound to one YAML file."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import threading
from pathlib import Path

from treeconf.codecs import TYPE_KEY, CodecRegistry
from treeconf.document import ConfigDocument, DocumentCodec, DocumentOptions
from treeconf.errors import ConfigIOError, DocumentParseError, InvalidPathError
from treeconf.node import Section
from treeconf.path import iter_values
from treeconf.section import ConfigSection
from treeconf.yaml_codec import YamlDocumentCodec

__all__ = ["ConfigStore"]

logger = logging.getLogger(__name__)


class ConfigStore(ConfigSection):
    """A configuration document bound to a file, with typed path access.

    Usage::

        store = ConfigStore.load("plugins/demo/config.yml")
        store.add_defaults({"greeting": "hello", "limits": {"max": 10}})
        store.set("limits.max", 20)
        store.save()

    Concurrency: one re-entrant lock per store guards the tree, the
    defaults table, comments and every load/save/reload, so at most one
    mutation or file operation is in flight per store and reads never see a
    half-replaced document. Two stores opened on the same file are
    independent and may overwrite each other's saves.

    ``reload()`` discards unsaved changes. Nothing is saved implicitly.
    """

    def __init__(
        self,
        file_path: str | os.PathLike[str],
        *,
        options: DocumentOptions | None = None,
        codecs: CodecRegistry | None = None,
        document_codec: DocumentCodec | None = None,
    ) -> None:
        """Create an unloaded store bound to ``file_path``; call ``reload()`` or use ``load()``."""
        if file_path is None or str(file_path) == "":
            raise InvalidPathError(file_path, "File path cannot be empty")
        self._rlock = threading.RLock()
        self._file_path = Path(file_path)
        self._options = options if options is not None else DocumentOptions()
        self._codecs = codecs if codecs is not None else CodecRegistry()
        self._document_codec: DocumentCodec = document_codec or YamlDocumentCodec()
        self._document = ConfigDocument(options=self._options)
        self._loaded = False
        super().__init__(self, self._document.root, "")

    # ----- Construction -----

    @classmethod
    def load(
        cls,
        file_path: str | os.PathLike[str],
        *,
        options: DocumentOptions | None = None,
        codecs: CodecRegistry | None = None,
        document_codec: DocumentCodec | None = None,
    ) -> ConfigStore:
        """Load ``file_path`` into a new store. A missing file yields an empty store.

        Raises:
            InvalidPathError: If ``file_path`` is None or empty.
            ConfigIOError: If the file exists but cannot be read.
            DocumentParseError: If the file is not a valid YAML mapping.
        """
        store = cls(file_path, options=options, codecs=codecs, document_codec=document_codec)
        store.reload()
        return store

    @classmethod
    async def load_async(
        cls,
        file_path: str | os.PathLike[str],
        *,
        options: DocumentOptions | None = None,
        codecs: CodecRegistry | None = None,
        document_codec: DocumentCodec | None = None,
    ) -> ConfigStore:
        """Run ``load()`` on a worker thread.

        Cancelling the awaiting task does not interrupt the read.
        """
        return await asyncio.to_thread(
            cls.load,
            file_path,
            options=options,
            codecs=codecs,
            document_codec=document_codec,
        )

    # ----- Properties -----

    @property
    def file_path(self) -> Path:
        """The file this store reads from and writes to."""
        return self._file_path

    @property
    def options(self) -> DocumentOptions:
        """Document options; assignments are validated (e.g. ``store.options.copy_defaults = True``)."""
        return self._options

    @property
    def codecs(self) -> CodecRegistry:
        """Registry of codecs for rich values stored in this document."""
        return self._codecs

    @property
    def loaded(self) -> bool:
        """Whether the store has been populated by a load or reload."""
        return self._loaded

    @property
    def document(self) -> ConfigDocument:
        """The live document. Callers must hold no expectations across ``reload()``."""
        return self._document

    # ----- Lifecycle -----

    def reload(self) -> None:
        """Re-read the bound file and replace the in-memory document.

        Unsaved changes are lost. Options, the defaults table and the
        registered codecs carry over; comments come from the file.

        Raises:
            ConfigIOError: If the file exists but cannot be read.
            DocumentParseError: If the file is not a valid YAML mapping.
        """
        with self._rlock:
            text = self._read_text()
            if text is None:
                logger.debug("Config file %s does not exist; starting empty", self._file_path)
                document = ConfigDocument(options=self._options)
            else:
                document = self._document_codec.parse(text, self._options, source=str(self._file_path))
            self._replace_document(document)
            logger.debug("Loaded %s (%d top-level keys)", self._file_path, len(document.root))

    async def reload_async(self) -> None:
        """Run ``reload()`` on a worker thread; once started it runs to completion."""
        await asyncio.to_thread(self.reload)

    def load_from_string(self, text: str) -> None:
        """Replace the in-memory document with one parsed from ``text``.

        Raises:
            DocumentParseError: If the text is not a valid YAML mapping.
        """
        with self._rlock:
            document = self._document_codec.parse(text, self._options, source="<string>")
            self._replace_document(document)

    def save(self) -> None:
        """Serialize the document and write it to the bound file.

        Parent directories are created as needed. The text is written to a
        temporary file next to the target and moved into place, so readers
        of the file see either the old or the new content.

        Raises:
            ConfigIOError: If the directory or file cannot be written.
        """
        with self._rlock:
            text = self.save_to_string()
            self._write_text(text)
            logger.debug("Saved %s (%d bytes)", self._file_path, len(text))

    async def save_async(self) -> None:
        """Run ``save()`` on a worker thread.

        Cancelling the awaiting task only discards the result; a write that
        has started is never cut short.
        """
        await asyncio.to_thread(self.save)

    def save_to_string(self) -> str:
        """Serialize the document without touching the file."""
        with self._rlock:
            if self._options.copy_defaults:
                self._apply_defaults()
            return self._document_codec.serialize(self._document)

    # ----- Internals -----

    def _replace_document(self, document: ConfigDocument) -> None:
        document.defaults = self._document.defaults
        document.options = self._options
        self._document = document
        self._node = document.root
        self._loaded = True
        if self._options.copy_defaults:
            self._apply_defaults()

    def _apply_defaults(self) -> None:
        for path, node in iter_values(self._document.defaults, deep=True, separator=self._separator):
            if isinstance(node, Section) and len(node) > 0 and TYPE_KEY not in node:
                continue
            self._copy_default(path, node)

    def _read_text(self) -> str | None:
        try:
            return self._file_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as e:
            raise DocumentParseError(
                message=f"Config file is not valid UTF-8: {e}",
                source=str(self._file_path),
                cause=e,
            ) from e
        except OSError as e:
            logger.error("Failed to read %s: %s", self._file_path, e)
            raise ConfigIOError(file_path=str(self._file_path), operation="read", reason=str(e), cause=e) from e

    def _write_text(self, text: str) -> None:
        target = self._file_path
        tmp_name: str | None = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
            os.replace(tmp_name, target)
            tmp_name = None
        except OSError as e:
            logger.error("Failed to save %s: %s", target, e)
            raise ConfigIOError(file_path=str(target), operation="write", reason=str(e), cause=e) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def __repr__(self) -> str:
        return f"<ConfigStore file={str(self._file_path)!r} loaded={self._loaded}>"

