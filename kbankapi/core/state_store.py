"""Durable storage for the session state blob.

The blob is a single JSON document that is replaced wholesale on every change.
Writes go through a temp file in the same directory followed by ``os.replace``
so readers only ever see the previous or the new complete document.
"""
from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)


class StateStoreError(RuntimeError):
    """The persisted state is missing or cannot be parsed."""


class StateStore:
    """Loads the persisted state at start-up and writes snapshots in the background.

    Snapshots handed to :meth:`notify` are queued and written by one consumer
    task, so they land on disk in the order they were emitted.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None

    def load(self) -> Dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StateStoreError(f"Cannot read state file {self.path}: {exc}") from exc

        try:
            state = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StateStoreError(f"State file {self.path} is not valid JSON: {exc}") from exc

        if not isinstance(state, dict):
            raise StateStoreError(f"State file {self.path} must contain a JSON object.")
        logger.info("Loaded session state from %s", self.path)
        return state

    def write(self, state: Dict[str, Any]) -> None:
        payload = json.dumps(state, indent=4, ensure_ascii=False)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_path)
            raise

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._queue = asyncio.Queue()
        self._task = asyncio.create_task(self._run(), name="state-store-writer")

    def notify(self, state: Dict[str, Any]) -> None:
        """Queue a snapshot for writing without waiting for it."""
        if self._queue is None:
            raise RuntimeError("StateStore.start() must be called before notify().")
        self._queue.put_nowait(state)

    async def _run(self) -> None:
        assert self._queue is not None
        while True:
            state = await self._queue.get()
            try:
                await asyncio.to_thread(self.write, state)
                logger.debug("Persisted session state to %s", self.path)
            except Exception:  # noqa: BLE001
                logger.exception("Failed to persist session state to %s", self.path)
            finally:
                self._queue.task_done()

    async def flush(self) -> None:
        """Wait until every queued snapshot has been written."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        if self._task is None:
            return
        await self.flush()
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("State store writer stopped")
