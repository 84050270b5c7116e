"""FlagCache 実装"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from .metrics import flag_cache_hits_total, flag_cache_misses_total, flag_store_errors_total
from .models import FlagRecord
from .store import FlagStore

DEFAULT_TTL_SECONDS = 60.0

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """キャッシュエントリ。丸ごと置き換えるため不変。"""

    record: FlagRecord
    fetched_at: float

    def is_expired(self, now: float, ttl: float) -> bool:
        return now - self.fetched_at >= ttl


class FlagCache:
    """TTL 付きのフラグレコードキャッシュ。

    期限切れは get 時に遅延判定する。ストア障害や未登録の結果は
    キャッシュしない。
    """

    def __init__(
        self,
        store: FlagStore,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")
        self._store = store
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    async def get(self, flag_name: str) -> FlagRecord | None:
        """フラグを取得する。見つからない場合とストア障害時は None。"""
        with self._lock:
            entry = self._entries.get(flag_name)
        if entry is not None and not entry.is_expired(self._clock(), self._ttl):
            flag_cache_hits_total.add(1)
            return entry.record

        flag_cache_misses_total.add(1)
        try:
            record = await self._store.read_flag(flag_name)
        except Exception as e:
            flag_store_errors_total.add(1, {"operation": "read_flag"})
            logger.warning("flag store read failed", flag=flag_name, error=str(e))
            return None

        if record is None:
            self._discard(flag_name, entry)
            return None
        if self._ttl > 0:
            with self._lock:
                self._entries[flag_name] = CacheEntry(record=record, fetched_at=self._clock())
        return record

    def invalidate(self, flag_name: str) -> None:
        with self._lock:
            self._entries.pop(flag_name, None)

    def invalidate_all(self) -> None:
        with self._lock:
            self._entries.clear()

    def _discard(self, flag_name: str, stale: CacheEntry | None) -> None:
        if stale is None:
            return
        with self._lock:
            # 並行して新しいエントリが入っていれば残す
            if self._entries.get(flag_name) is stale:
                del self._entries[flag_name]

    def __contains__(self, flag_name: object) -> bool:
        with self._lock:
            entry = self._entries.get(flag_name)  # type: ignore[arg-type]
        return entry is not None and not entry.is_expired(self._clock(), self._ttl)

    def __len__(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for e in self._entries.values() if not e.is_expired(now, self._ttl))
