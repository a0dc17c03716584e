from __future__ import annotations

import logging
from typing import Generic, Optional, TypeVar

from cachetools import FIFOCache

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CorrelationNotFound(KeyError):
    """No payload is registered under the requested server-issued identifier."""

    def __init__(self, table: str, key: str):
        super().__init__(key)
        self.table = table
        self.key = key

    def __str__(self) -> str:
        return f"{self.key!r} is not registered in {self.table}"


class CorrelationTable(Generic[T]):
    """Maps server-issued identifiers to locally held payloads.

    Bridges two independent requests of one flow (list -> detail, inquire ->
    confirm). The table is bounded; once ``max_entries`` is reached the oldest
    registration is evicted first. Only the event loop touches it, so plain
    dict operations are atomic with respect to other requests.
    """

    def __init__(self, name: str, max_entries: Optional[int] = None):
        self.name = name
        self._entries: FIFOCache = FIFOCache(maxsize=max_entries or float("inf"))

    def register(self, key: str, payload: T) -> None:
        if key in self._entries:
            # re-registration counts as the newest entry
            del self._entries[key]
        self._entries[key] = payload
        logger.debug("Registered %s in %s (%d entries)", key, self.name, len(self._entries))

    def resolve(self, key: str) -> T:
        try:
            return self._entries[key]
        except KeyError:
            raise CorrelationNotFound(self.name, key) from None

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
