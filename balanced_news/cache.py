from __future__ import annotations

import copy
import json
import threading
import time
from collections import OrderedDict
from typing import Callable

from .config import CACHE_MAX_ENTRIES, CACHE_STALE_SECONDS, CACHE_TTL_SECONDS


def cache_key(parameters: dict) -> str:
    return json.dumps(parameters, sort_keys=True, ensure_ascii=True)


class ResponseCache:
    def __init__(
        self,
        ttl: float = CACHE_TTL_SECONDS,
        stale_ttl: float = CACHE_STALE_SECONDS,
        max_entries: int = CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.stale_ttl = stale_ttl
        self.max_entries = max_entries
        self.clock = clock
        self._entries: OrderedDict[str, tuple[float, dict]] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> dict | None:
        return self._lookup(key, self.ttl)

    def get_stale(self, key: str) -> dict | None:
        return self._lookup(key, self.stale_ttl)

    def set(self, key: str, payload: dict) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = (self.clock(), copy.deepcopy(payload))
            self._purge_expired()
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _lookup(self, key: str, max_age: float) -> dict | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, payload = entry
            age = self.clock() - stored_at
            if age >= self.stale_ttl:
                del self._entries[key]
                return None
            if age >= max_age:
                return None
            return copy.deepcopy(payload)

    def _purge_expired(self) -> None:
        now = self.clock()
        expired = [key for key, (stored_at, _) in self._entries.items() if now - stored_at >= self.stale_ttl]
        for key in expired:
            del self._entries[key]


RESPONSE_CACHE = ResponseCache()
