"""Shared fixtures for the treeconf test suite."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest
from pydantic import BaseModel

from treeconf.codecs import CodecRegistry, ModelCodec
from treeconf.store import ConfigStore


# === Rich value types ===


class Location(BaseModel):
    world: str
    x: float
    y: float


class Color(BaseModel):
    red: int
    green: int
    blue: int


# === Helpers ===


def write_text(path: Path, content: str) -> Path:
    """Write dedented YAML text to ``path`` and return it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
    return path


# === Fixtures ===


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """Path of a not-yet-existing config file inside tmp_path."""
    return tmp_path / "config.yml"


@pytest.fixture
def store(config_path: Path) -> ConfigStore:
    """An empty store bound to a missing file."""
    return ConfigStore.load(config_path)


@pytest.fixture
def codecs() -> CodecRegistry:
    """Registry with codecs for Location and Color."""
    return CodecRegistry([ModelCodec(Location), ModelCodec(Color)])


@pytest.fixture
def rich_store(config_path: Path, codecs: CodecRegistry) -> ConfigStore:
    """An empty store that can hold Location and Color values."""
    return ConfigStore.load(config_path, codecs=codecs)


@pytest.fixture
def write_yaml():
    """The ``write_text`` helper, for tests that create their own files."""
    return write_text
