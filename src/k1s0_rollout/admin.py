"""フラグ管理操作"""

from __future__ import annotations

import asyncio
import dataclasses
from collections import defaultdict
from collections.abc import Awaitable, Iterable
from datetime import datetime, timezone
from typing import Any

import structlog

from .bucket import BucketAssigner
from .cache import FlagCache
from .exceptions import RolloutError, RolloutErrorCodes
from .metrics import flag_store_errors_total
from .models import AdminResult, FlagRecord, RolloutStats, is_valid_percentage
from .store import FlagStore

logger = structlog.get_logger(__name__)

_IMMUTABLE_FIELDS = frozenset({"name", "id", "created_at"})
_UPDATABLE_FIELDS = frozenset(
    f.name for f in dataclasses.fields(FlagRecord) if f.name not in _IMMUTABLE_FIELDS
)
_USER_SET_FIELDS = ("target_users", "excluded_users")

_PERCENTAGE_ERROR = "Percentage must be between 0 and 100"


class FlagAdmin:
    """フラグの作成・更新を行う管理操作。

    すべての操作は例外を送出せず AdminResult を返す。更新系の操作は
    ストアへの書き込み後に該当フラグのキャッシュを無効化する。
    """

    def __init__(
        self,
        store: FlagStore,
        cache: FlagCache,
        assigner: BucketAssigner | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._assigner = assigner
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def create_flag(self, record: FlagRecord) -> AdminResult:
        """フラグを新規作成する。同名フラグが存在する場合は CONFLICT。"""
        if not record.name:
            return AdminResult.fail(RolloutErrorCodes.INVALID_ARGUMENT, "Flag name is required")
        if not is_valid_percentage(record.rollout_percentage):
            return AdminResult.fail(RolloutErrorCodes.INVALID_ARGUMENT, _PERCENTAGE_ERROR)

        now = datetime.now(timezone.utc)
        record = dataclasses.replace(
            record,
            target_users=frozenset(record.target_users),
            excluded_users=frozenset(record.excluded_users),
            created_at=now,
            updated_at=now,
        )
        result = await self._call("create_flag", record.name, self._store.write_flag(record))
        if not result.success:
            return result
        self._cache.invalidate(record.name)
        logger.info("flag created", flag=record.name, rollout=record.rollout_percentage)
        return AdminResult.ok(id=record.id)

    async def update_flag(self, name: str, /, **fields: Any) -> AdminResult:
        """フラグの一部フィールドを更新する。"""
        immutable = _IMMUTABLE_FIELDS.intersection(fields)
        if immutable:
            return AdminResult.fail(
                RolloutErrorCodes.INVALID_ARGUMENT,
                f"Fields are immutable: {', '.join(sorted(immutable))}",
            )
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            return AdminResult.fail(
                RolloutErrorCodes.INVALID_ARGUMENT,
                f"Unknown fields: {', '.join(sorted(unknown))}",
            )
        if "rollout_percentage" in fields and not is_valid_percentage(
            fields["rollout_percentage"]
        ):
            return AdminResult.fail(RolloutErrorCodes.INVALID_ARGUMENT, _PERCENTAGE_ERROR)
        if "enabled" in fields and not isinstance(fields["enabled"], bool):
            return AdminResult.fail(RolloutErrorCodes.INVALID_ARGUMENT, "enabled must be a bool")

        for key in _USER_SET_FIELDS:
            if key in fields:
                fields[key] = frozenset(fields[key])

        async with self._locks[name]:
            return await self._patch(name, fields)

    async def set_enabled(self, name: str, enabled: bool) -> AdminResult:
        return await self.update_flag(name, enabled=enabled)

    async def set_rollout_percentage(self, name: str, percentage: int) -> AdminResult:
        """ロールアウト率を設定する。範囲外は INVALID_ARGUMENT でストアは変更しない。"""
        if not is_valid_percentage(percentage):
            return AdminResult.fail(RolloutErrorCodes.INVALID_ARGUMENT, _PERCENTAGE_ERROR)
        return await self.update_flag(name, rollout_percentage=percentage)

    async def add_target_users(self, name: str, user_ids: Iterable[str]) -> AdminResult:
        return await self._edit_users(name, "target_users", user_ids, add=True)

    async def remove_target_users(self, name: str, user_ids: Iterable[str]) -> AdminResult:
        return await self._edit_users(name, "target_users", user_ids, add=False)

    async def add_excluded_users(self, name: str, user_ids: Iterable[str]) -> AdminResult:
        return await self._edit_users(name, "excluded_users", user_ids, add=True)

    async def remove_excluded_users(self, name: str, user_ids: Iterable[str]) -> AdminResult:
        return await self._edit_users(name, "excluded_users", user_ids, add=False)

    async def get_rollout_stats(self, name: str) -> RolloutStats:
        """ロールアウト統計を返す。フラグが無ければ 0 埋めの統計。"""
        record = await self._cache.get(name)
        if record is None:
            return RolloutStats()
        return RolloutStats.of(record)

    async def list_all_flags(self) -> list[FlagRecord]:
        """全フラグを名前順で返す。ストア障害時は空リスト。"""
        try:
            flags = await self._store.list_flags()
        except Exception as e:
            flag_store_errors_total.add(1, {"operation": "list_flags"})
            logger.warning("flag store list failed", error=str(e))
            return []
        return sorted(flags, key=lambda f: f.name)

    def clear_cache(self, include_buckets: bool = False) -> None:
        """フラグキャッシュを消去する。include_buckets 指定時はバケットのメモも消去する。"""
        self._cache.invalidate_all()
        if include_buckets and self._assigner is not None:
            self._assigner.clear()

    async def _edit_users(
        self,
        name: str,
        field_name: str,
        user_ids: Iterable[str],
        add: bool,
    ) -> AdminResult:
        ids = frozenset(user_ids)
        async with self._locks[name]:
            try:
                current = await self._store.read_flag(name)
            except Exception as e:
                return self._store_failure("read_flag", name, e)
            if current is None:
                return AdminResult.fail(RolloutErrorCodes.NOT_FOUND, "Feature flag not found")

            existing: frozenset[str] = getattr(current, field_name)
            updated = existing | ids if add else existing - ids
            if updated == existing:
                return AdminResult.ok()
            return await self._write_patch(name, {field_name: updated})

    async def _patch(self, name: str, fields: dict[str, Any]) -> AdminResult:
        try:
            current = await self._store.read_flag(name)
        except Exception as e:
            return self._store_failure("read_flag", name, e)
        if current is None:
            return AdminResult.fail(RolloutErrorCodes.NOT_FOUND, "Feature flag not found")
        return await self._write_patch(name, fields)

    async def _write_patch(self, name: str, fields: dict[str, Any]) -> AdminResult:
        patch = {**fields, "updated_at": datetime.now(timezone.utc)}
        result = await self._call("patch_flag", name, self._store.patch_flag(name, patch))
        if not result.success:
            return result
        self._cache.invalidate(name)
        logger.info("flag updated", flag=name, fields=sorted(fields))
        return result

    async def _call(self, operation: str, name: str, call: Awaitable[None]) -> AdminResult:
        try:
            await call
        except Exception as e:
            return self._store_failure(operation, name, e)
        return AdminResult.ok()

    def _store_failure(self, operation: str, name: str, error: Exception) -> AdminResult:
        if isinstance(error, RolloutError):
            code = error.code
            message = str(error.args[0]) if error.args else code
        else:
            code = RolloutErrorCodes.STORE_UNAVAILABLE
            message = str(error)
        if code == RolloutErrorCodes.STORE_UNAVAILABLE:
            flag_store_errors_total.add(1, {"operation": operation})
        logger.warning("flag admin operation failed", operation=operation, flag=name, code=code)
        return AdminResult.fail(code, message)
