"""ConfigFolder: loads stores by file name from an injected base directory."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from treeconf.codecs import CodecRegistry
from treeconf.document import DocumentOptions
from treeconf.errors import InvalidPathError
from treeconf.store import ConfigStore

__all__ = ["ConfigFolder"]

logger = logging.getLogger(__name__)


class ConfigFolder:
    """Resolves configuration file names against an application's data directory.

    Each store loaded through the folder gets its own copy of the folder's
    options and shares the folder's codec registry.
    """

    def __init__(
        self,
        base_dir: str | os.PathLike[str],
        *,
        options: DocumentOptions | None = None,
        codecs: CodecRegistry | None = None,
    ) -> None:
        if base_dir is None or str(base_dir) == "":
            raise InvalidPathError(base_dir, "Base directory cannot be empty")
        self._base_dir = Path(base_dir).resolve()
        self._options = options if options is not None else DocumentOptions()
        self._codecs = codecs if codecs is not None else CodecRegistry()

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    @property
    def codecs(self) -> CodecRegistry:
        return self._codecs

    def resolve(self, file_name: str | os.PathLike[str]) -> Path:
        """Absolute path of ``file_name`` inside the base directory.

        Raises:
            InvalidPathError: If the name is None, empty, or points outside
                the base directory.
        """
        if file_name is None or str(file_name) == "":
            raise InvalidPathError(file_name, "File name cannot be empty")
        path = (self._base_dir / file_name).resolve()
        if not path.is_relative_to(self._base_dir):
            raise InvalidPathError(file_name, "File name escapes the base directory")
        return path

    def load(self, file_name: str | os.PathLike[str]) -> ConfigStore:
        """Load ``file_name`` from the base directory (missing files load empty)."""
        path = self.resolve(file_name)
        logger.debug("Loading %s from %s", file_name, self._base_dir)
        return ConfigStore.load(path, options=self._options.model_copy(), codecs=self._codecs)

    async def load_async(self, file_name: str | os.PathLike[str]) -> ConfigStore:
        """Resolve synchronously, then load on a worker thread."""
        path = self.resolve(file_name)
        return await ConfigStore.load_async(path, options=self._options.model_copy(), codecs=self._codecs)

    def __repr__(self) -> str:
        return f"ConfigFolder({str(self._base_dir)!r})"
