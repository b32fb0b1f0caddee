"""Example: settings for a game-server plugin kept in a data directory.

Run with a directory argument; the first run writes ``config.yml`` with
defaults, later runs read whatever the operator edited.
"""

from __future__ import annotations

import logging
import sys

from pydantic import BaseModel

from treeconf import CodecRegistry, ConfigFolder, ConfigStore, DocumentOptions, ModelCodec


class Location(BaseModel):
    """A point in a named world."""

    world: str
    x: float
    y: float
    z: float


DEFAULTS = {
    "server": {"motd": "Welcome!", "max-players": 20},
    "spawn": Location(world="overworld", x=0.0, y=64.0, z=0.0),
    "banned-words": [],
}


def open_settings(data_dir: str) -> ConfigStore:
    """Load config.yml from ``data_dir``, filling in and saving missing defaults."""
    folder = ConfigFolder(
        data_dir,
        options=DocumentOptions(copy_defaults=True, header="Plugin settings"),
        codecs=CodecRegistry([ModelCodec(Location)]),
    )
    store = folder.load("config.yml")
    store.add_defaults(DEFAULTS)
    if not store.get_comments("server.max-players"):
        store.set_comments("server.max-players", ["0 means unlimited"])
    store.save()
    return store


def main(argv: list[str]) -> int:
    logging.basicConfig(level=logging.DEBUG)
    store = open_settings(argv[1] if len(argv) > 1 else ".")
    spawn = store.get_value("spawn", Location)
    print(f"motd: {store.get_string('server.motd')}")
    print(f"max players: {store.get_int('server.max-players')}")
    print(f"spawn: {spawn}")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
