"""Tests for kbankapi.core.state_store."""
import json
import os

import pytest

from kbankapi.core.state_store import StateStore, StateStoreError


class TestLoad:
    def test_loads_json_object(self, state_store):
        assert state_store.load() == {"deviceId": "device-1", "accessToken": "token-1"}

    def test_missing_file_is_fatal(self, tmp_path):
        with pytest.raises(StateStoreError, match="Cannot read state file"):
            StateStore(tmp_path / "absent.json").load()

    def test_unparsable_file_is_fatal(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(StateStoreError, match="not valid JSON"):
            StateStore(path).load()

    def test_non_object_document_is_fatal(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")

        with pytest.raises(StateStoreError, match="JSON object"):
            StateStore(path).load()


class TestWrite:
    def test_write_replaces_whole_document(self, state_store, state_file):
        state_store.write({"deviceId": "device-9"})

        assert json.loads(state_file.read_text(encoding="utf-8")) == {"deviceId": "device-9"}

    def test_write_is_indented_json(self, state_store, state_file):
        state_store.write({"deviceId": "device-9"})

        assert state_file.read_text(encoding="utf-8") == json.dumps({"deviceId": "device-9"}, indent=4)

    def test_write_leaves_no_temp_files(self, state_store, state_file):
        state_store.write({"a": 1})
        state_store.write({"a": 2})

        assert sorted(os.listdir(state_file.parent)) == ["state.json"]

    def test_failed_replace_keeps_previous_document(self, state_store, state_file, monkeypatch):
        before = state_file.read_text(encoding="utf-8")

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", broken_replace)
        with pytest.raises(OSError):
            state_store.write({"deviceId": "device-9"})

        assert state_file.read_text(encoding="utf-8") == before
        assert sorted(os.listdir(state_file.parent)) == ["state.json"]

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "state.json"

        StateStore(path).write({"deviceId": "x"})

        assert json.loads(path.read_text(encoding="utf-8")) == {"deviceId": "x"}


@pytest.mark.asyncio
class TestBackgroundWriter:
    async def test_notify_before_start_raises(self, state_store):
        with pytest.raises(RuntimeError):
            state_store.notify({"a": 1})

    async def test_writes_land_in_program_order(self, state_store, state_file):
        state_store.start()
        for index in range(20):
            state_store.notify({"counter": index})
        await state_store.flush()

        assert json.loads(state_file.read_text(encoding="utf-8")) == {"counter": 19}
        await state_store.stop()

    async def test_each_snapshot_written_once_in_order(self, state_store, monkeypatch):
        written = []
        monkeypatch.setattr(state_store, "write", written.append)
        state_store.start()

        for index in range(5):
            state_store.notify({"counter": index})
        await state_store.stop()

        assert written == [{"counter": index} for index in range(5)]

    async def test_notify_does_not_wait_for_disk(self, state_store, monkeypatch):
        written = []

        def record(state):
            written.append(state)

        monkeypatch.setattr(state_store, "write", record)
        state_store.start()

        state_store.notify({"counter": 1})
        assert written == []

        await state_store.flush()
        assert written == [{"counter": 1}]
        await state_store.stop()

    async def test_writer_survives_failed_write(self, state_store, state_file, monkeypatch):
        calls = []
        original = state_store.write

        def flaky(state):
            calls.append(state)
            if len(calls) == 1:
                raise OSError("disk full")
            original(state)

        monkeypatch.setattr(state_store, "write", flaky)
        state_store.start()
        state_store.notify({"counter": 1})
        state_store.notify({"counter": 2})
        await state_store.flush()

        assert state_store.running
        assert json.loads(state_file.read_text(encoding="utf-8")) == {"counter": 2}
        await state_store.stop()
        assert not state_store.running
