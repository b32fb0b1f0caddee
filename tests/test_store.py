"""Tests for ConfigStore: file lifecycle, I/O failures and thread safety."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from treeconf.document import DocumentOptions
from treeconf.errors import ConfigIOError, DocumentParseError, InvalidPathError
from treeconf.store import ConfigStore


# === Construction and loading ===


class TestLoad:
    def test_missing_file_loads_empty(self, config_path: Path) -> None:
        store = ConfigStore.load(config_path)
        assert store.loaded
        assert store.get_keys() == []
        assert not config_path.exists()

    def test_loads_existing_file(self, config_path: Path, write_yaml) -> None:
        write_yaml(
            config_path,
            """
            name: demo
            limits:
              max: 10
            """,
        )
        store = ConfigStore.load(config_path)
        assert store.get_string("name") == "demo"
        assert store.get_int("limits.max") == 10

    def test_accepts_string_path(self, config_path: Path) -> None:
        store = ConfigStore.load(str(config_path))
        assert store.file_path == config_path

    @pytest.mark.parametrize("bad", [None, ""])
    def test_rejects_empty_path(self, bad: object) -> None:
        with pytest.raises(InvalidPathError):
            ConfigStore(bad)  # type: ignore[arg-type]

    def test_constructor_does_not_read(self, config_path: Path, write_yaml) -> None:
        write_yaml(config_path, "a: 1\n")
        store = ConfigStore(config_path)
        assert not store.loaded
        assert store.get_keys() == []

    def test_invalid_yaml_raises(self, config_path: Path, write_yaml) -> None:
        write_yaml(config_path, "a: [1, 2\n")
        with pytest.raises(DocumentParseError) as exc_info:
            ConfigStore.load(config_path)
        assert exc_info.value.details["source"] == str(config_path)

    def test_non_utf8_raises_parse_error(self, config_path: Path) -> None:
        config_path.write_bytes(b"a: \xff\xfe\n")
        with pytest.raises(DocumentParseError, match="UTF-8"):
            ConfigStore.load(config_path)

    def test_directory_path_raises_io_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigIOError) as exc_info:
            ConfigStore.load(tmp_path)
        assert exc_info.value.operation == "read"
        assert exc_info.value.file_path == str(tmp_path)

    def test_unreadable_parent_raises_io_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        with pytest.raises(ConfigIOError):
            ConfigStore.load(blocker / "config.yml")

    def test_boolean_keys_load_lowercase(self, config_path: Path, write_yaml) -> None:
        write_yaml(config_path, "yes: 1\nno: 2\n")
        store = ConfigStore.load(config_path)
        assert store.get_keys() == ["true", "false"]
        assert store.get_int("true") == 1
        assert store.save_to_string() == "'true': 1\n'false': 2\n"

    def test_repr(self, store: ConfigStore) -> None:
        assert "config.yml" in repr(store)
        assert "loaded=True" in repr(store)


# === reload() ===


class TestReload:
    def test_reload_discards_unsaved_changes(self, config_path: Path, write_yaml) -> None:
        write_yaml(config_path, "a: 1\n")
        store = ConfigStore.load(config_path)
        store.set("a", 2)
        store.set("b", 3)
        store.reload()
        assert store.get_int("a") == 1
        assert not store.contains("b")

    def test_reload_picks_up_external_changes(self, config_path: Path, write_yaml) -> None:
        store = ConfigStore.load(config_path)
        write_yaml(config_path, "fresh: yes\n")
        store.reload()
        assert store.get_boolean("fresh") is True

    def test_reload_after_delete_is_empty(self, config_path: Path, write_yaml) -> None:
        write_yaml(config_path, "a: 1\n")
        store = ConfigStore.load(config_path)
        config_path.unlink()
        store.reload()
        assert store.get_keys() == []

    def test_failed_reload_keeps_document(self, config_path: Path, write_yaml) -> None:
        write_yaml(config_path, "a: 1\n")
        store = ConfigStore.load(config_path)
        write_yaml(config_path, "a: [broken\n")
        with pytest.raises(DocumentParseError):
            store.reload()
        assert store.get_int("a") == 1

    def test_options_survive_reload(self, config_path: Path, write_yaml) -> None:
        store = ConfigStore.load(config_path, options=DocumentOptions(indent=4))
        write_yaml(config_path, "a:\n  b: 1\n")
        store.reload()
        assert store.options.indent == 4
        assert store.save_to_string() == "a:\n    b: 1\n"

    def test_header_replaced_from_existing_file(self, config_path: Path, write_yaml) -> None:
        write_yaml(config_path, "a: 1\n")
        store = ConfigStore.load(config_path, options=DocumentOptions(header="Configured"))
        assert store.options.header == ""

    def test_missing_file_keeps_configured_header(self, config_path: Path) -> None:
        store = ConfigStore.load(config_path, options=DocumentOptions(header="Configured"))
        store.reload()
        assert store.options.header == "Configured"
        store.set("a", 1)
        store.save()
        assert config_path.read_text(encoding="utf-8") == "# Configured\n\na: 1\n"

    def test_load_from_string(self, store: ConfigStore) -> None:
        store.set("old", 1)
        store.load_from_string("new: 2\n")
        assert store.get_keys() == ["new"]
        assert store.loaded

    def test_root_handle_follows_reload(self, config_path: Path, write_yaml) -> None:
        write_yaml(config_path, "a: 1\n")
        store = ConfigStore.load(config_path)
        write_yaml(config_path, "a: 2\n")
        store.reload()
        store.set("b", 3)
        assert store.get_keys() == ["a", "b"]


# === save() ===


class TestSave:
    def test_save_then_reload_round_trips(self, config_path: Path) -> None:
        store = ConfigStore.load(config_path)
        store.set("name", "demo")
        store.set("limits.max", 10)
        store.set("tags", ["a", "b"])
        store.save()

        again = ConfigStore.load(config_path)
        assert again.get_string("name") == "demo"
        assert again.get_int("limits.max") == 10
        assert again.get_string_list("tags") == ["a", "b"]

    def test_save_writes_exact_text(self, store: ConfigStore, config_path: Path) -> None:
        store.set("a.b", 1)
        store.set_comments("a.b", ["note"])
        store.save()
        assert config_path.read_text(encoding="utf-8") == "a:\n  # note\n  b: 1\n"

    def test_preserves_header_and_comments(self, config_path: Path, write_yaml) -> None:
        original = write_yaml(
            config_path,
            """
            # My plugin

            # how loud
            volume: 5
            """,
        ).read_text(encoding="utf-8")
        store = ConfigStore.load(config_path)
        store.save()
        assert config_path.read_text(encoding="utf-8") == original

    def test_header_can_be_set(self, store: ConfigStore, config_path: Path) -> None:
        store.options.header = "Generated"
        store.set("a", 1)
        store.save()
        assert config_path.read_text(encoding="utf-8") == "# Generated\n\na: 1\n"

    def test_save_creates_parent_directories(self, tmp_path: Path) -> None:
        path = tmp_path / "deep" / "er" / "config.yml"
        store = ConfigStore.load(path)
        store.set("a", 1)
        store.save()
        assert path.read_text(encoding="utf-8") == "a: 1\n"

    def test_save_leaves_no_temp_files(self, store: ConfigStore, config_path: Path) -> None:
        store.set("a", 1)
        store.save()
        store.save()
        assert [p.name for p in config_path.parent.iterdir()] == ["config.yml"]

    def test_save_failure_raises_io_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = ConfigStore(blocker / "config.yml")
        store.set("a", 1)
        with pytest.raises(ConfigIOError) as exc_info:
            store.save()
        assert exc_info.value.operation == "write"
        assert isinstance(exc_info.value, OSError)
        assert store.get_int("a") == 1

    def test_nested_binary_value_round_trips(self, store: ConfigStore, config_path: Path) -> None:
        store.set("a.b", b"abc")
        store.set("a.c", 1)
        store.set("a.d.e", b"\x00\xff")
        store.save()

        again = ConfigStore.load(config_path)
        assert again.get("a.b") == b"abc"
        assert again.get_int("a.c") == 1
        assert again.get("a.d.e") == b"\x00\xff"

    def test_save_to_string_does_not_touch_file(self, store: ConfigStore, config_path: Path) -> None:
        store.set("a", 1)
        assert store.save_to_string() == "a: 1\n"
        assert not config_path.exists()

    def test_custom_separator(self, config_path: Path) -> None:
        store = ConfigStore.load(config_path, options=DocumentOptions(path_separator="/"))
        store.set("server.example/port", 25565)
        assert store.get_keys() == ["server.example"]
        store.save()
        again = ConfigStore.load(config_path, options=DocumentOptions(path_separator="/"))
        assert again.get_int("server.example/port") == 25565


# === Thread safety ===


class TestConcurrency:
    def test_concurrent_sets_are_not_lost(self, store: ConfigStore) -> None:
        def worker(n: int) -> None:
            for i in range(100):
                store.set(f"t{n}.k{i}", i)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store.get_keys()) == 8
        leaves = [k for k in store.get_keys(deep=True) if "." in k]
        assert len(leaves) == 800

    def test_concurrent_saves_produce_complete_file(self, store: ConfigStore, config_path: Path) -> None:
        errors: list[Exception] = []

        def worker(n: int) -> None:
            try:
                for i in range(20):
                    store.set(f"w{n}.k{i}", i)
                    store.save()
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        again = ConfigStore.load(config_path)
        assert sorted(again.get_keys()) == ["w0", "w1", "w2", "w3"]
        assert all(len(again.get_keys(f"w{n}")) == 20 for n in range(4))
        assert [p.name for p in config_path.parent.iterdir()] == ["config.yml"]

    def test_readers_see_whole_documents(self, config_path: Path, write_yaml) -> None:
        write_yaml(config_path, "a: 1\nb: 1\n")
        store = ConfigStore.load(config_path)
        stop = threading.Event()
        torn: list[tuple[int, int]] = []

        def reader() -> None:
            while not stop.is_set():
                values = store.get_values()
                if values["a"] != values["b"]:
                    torn.append((values["a"], values["b"]))

        thread = threading.Thread(target=reader)
        thread.start()
        try:
            for i in range(2, 30):
                store.load_from_string(f"a: {i}\nb: {i}\n")
        finally:
            stop.set()
            thread.join()
        assert torn == []
