"""FlagStore 抽象基底クラス"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from .models import FlagRecord


class FlagStore(ABC):
    """フラグ永続化ストア抽象基底クラス。

    一時的な I/O 障害は RolloutError(STORE_UNAVAILABLE) として送出する。
    """

    @abstractmethod
    async def read_flag(self, name: str) -> FlagRecord | None:
        """名前に対応するフラグを取得する。存在しなければ None。"""
        ...

    @abstractmethod
    async def write_flag(self, record: FlagRecord) -> None:
        """フラグを新規保存する。名前が既に存在する場合は RolloutError(CONFLICT)。"""
        ...

    @abstractmethod
    async def patch_flag(self, name: str, fields: dict[str, Any]) -> None:
        """フラグの一部フィールドを更新する。存在しない場合は RolloutError(NOT_FOUND)。"""
        ...

    @abstractmethod
    async def list_flags(self) -> list[FlagRecord]:
        """全フラグを取得する。"""
        ...
