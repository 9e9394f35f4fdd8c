from __future__ import annotations

import logging
import time
from collections import OrderedDict
from threading import RLock
from typing import Any, Callable, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)


class TTLCache:
    """Small LRU map whose entries expire ``ttl`` seconds after being stored.

    Used to memoize DPR-derived team profiles keyed by ``(season, week)``.
    Values are always re-derivable, so ``clear`` is safe at any time.
    """

    def __init__(
        self,
        ttl: float = 30.0,
        maxsize: int = 64,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.maxsize = maxsize
        self._clock = clock
        self._store: OrderedDict[Hashable, Tuple[float, Any]] = OrderedDict()
        self._lock = RLock()

    def _prune(self) -> None:
        while len(self._store) > self.maxsize:
            self._store.popitem(last=False)

    def get(self, key: Hashable) -> Any | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                logger.debug("Cache miss for %s", key)
                return None
            stored_at, value = entry
            if self._clock() - stored_at >= self.ttl:
                del self._store[key]
                logger.debug("Cache entry for %s expired", key)
                return None
            self._store.move_to_end(key)
            logger.debug("Cache hit for %s", key)
            return value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._store.pop(key, None)
            self._store[key] = (self._clock(), value)
            self._prune()

    def get_or_set(self, key: Hashable, factory: Callable[[], Any]) -> Any:
        value = self.get(key)
        if value is None:
            value = factory()
            self.set(key, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


def build_profile_key(season: int, week: Optional[int]) -> Tuple[str, int, int]:
    return ("profiles", int(season), int(week) if week is not None else -1)
