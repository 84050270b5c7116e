"""InMemoryFlagStore 実装"""

from __future__ import annotations

import asyncio
import dataclasses
from typing import Any

from .exceptions import RolloutError, RolloutErrorCodes
from .models import FlagRecord
from .store import FlagStore

_PATCHABLE_FIELDS = frozenset(
    f.name for f in dataclasses.fields(FlagRecord) if f.name not in ("name", "id", "created_at")
)


class InMemoryFlagStore(FlagStore):
    """テスト・単一プロセス用インメモリフラグストア。"""

    def __init__(self, flags: list[FlagRecord] | None = None) -> None:
        self._flags: dict[str, FlagRecord] = {f.name: f for f in flags or []}
        self._lock = asyncio.Lock()

    async def read_flag(self, name: str) -> FlagRecord | None:
        return self._flags.get(name)

    async def write_flag(self, record: FlagRecord) -> None:
        async with self._lock:
            if record.name in self._flags:
                raise RolloutError(
                    RolloutErrorCodes.CONFLICT,
                    f"Flag already exists: {record.name}",
                )
            self._flags[record.name] = record

    async def patch_flag(self, name: str, fields: dict[str, Any]) -> None:
        unknown = set(fields) - _PATCHABLE_FIELDS
        if unknown:
            raise RolloutError(
                RolloutErrorCodes.INVALID_ARGUMENT,
                f"Fields cannot be patched: {', '.join(sorted(unknown))}",
            )
        async with self._lock:
            current = self._flags.get(name)
            if current is None:
                raise RolloutError(RolloutErrorCodes.NOT_FOUND, f"Flag not found: {name}")
            self._flags[name] = dataclasses.replace(current, **fields)

    async def list_flags(self) -> list[FlagRecord]:
        return list(self._flags.values())
