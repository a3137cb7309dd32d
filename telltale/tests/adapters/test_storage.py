"""Tests for user storage adapters."""

import json

from telltale.adapters.storage.stores import EnvironmentStorage, JsonFileStorage, MemoryStorage
from telltale.core.user_context import USER_KEY, UserContextResolver


class TestMemoryStorage:
    def test_set_notifies_listeners(self):
        storage = MemoryStorage()
        changed: list[str] = []
        storage.subscribe(changed.append)

        storage.set_item("user", "{}")
        storage.remove_item("user")
        storage.remove_item("user")

        assert changed == ["user", "user"]
        assert storage.get_item("user") is None

    def test_unsubscribe(self):
        storage = MemoryStorage()
        changed: list[str] = []
        storage.subscribe(changed.append)
        storage.unsubscribe(changed.append)

        storage.set_item("k", "v")

        assert changed == []


class TestEnvironmentStorage:
    def test_reads_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("TELLTALE_USER", json.dumps({"id": "ops"}))
        assert EnvironmentStorage().get_item("user") == '{"id": "ops"}'

    def test_set_item_writes_environment(self, monkeypatch):
        monkeypatch.delenv("APP_SESSION", raising=False)
        storage = EnvironmentStorage(prefix="APP_")

        storage.set_item("session", "abc")

        assert storage.get_item("session") == "abc"
        monkeypatch.delenv("APP_SESSION")


class TestJsonFileStorage:
    def test_round_trip_and_nested_values(self, tmp_path):
        path = tmp_path / "storage.json"
        path.write_text(json.dumps({USER_KEY: {"id": 5, "name": "Kim"}}))
        storage = JsonFileStorage(path)

        user = UserContextResolver(storage, MemoryStorage()).detect()

        assert user.id == "5"
        assert user.username == "Kim"

    def test_missing_file_is_empty(self, tmp_path):
        assert JsonFileStorage(tmp_path / "nope.json").get_item("user") is None

    def test_corrupt_file_is_empty(self, tmp_path):
        path = tmp_path / "storage.json"
        path.write_text("[not an object")
        assert JsonFileStorage(path).get_item("user") is None

    def test_set_item_persists(self, tmp_path):
        path = tmp_path / "nested" / "storage.json"
        storage = JsonFileStorage(path)

        storage.set_item("k", "v")

        assert json.loads(path.read_text()) == {"k": "v"}
        assert storage.poll() is False

    def test_poll_detects_external_change(self, tmp_path):
        import os

        path = tmp_path / "storage.json"
        path.write_text(json.dumps({"user": "{}"}))
        storage = JsonFileStorage(path)
        changed: list[str] = []
        storage.subscribe(changed.append)

        path.write_text(json.dumps({"user": '{"id": "x"}'}))
        stat = path.stat()
        os.utime(path, (stat.st_atime, stat.st_mtime + 10))

        assert storage.poll() is True
        assert changed == ["user"]
