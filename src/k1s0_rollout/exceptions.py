"""rollout ライブラリの例外型定義"""

from __future__ import annotations


class RolloutError(Exception):
    """rollout ライブラリのエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class RolloutErrorCodes:
    """RolloutError のエラーコード定数。"""

    NOT_FOUND: str = "NOT_FOUND"
    CONFLICT: str = "CONFLICT"
    INVALID_ARGUMENT: str = "INVALID_ARGUMENT"
    STORE_UNAVAILABLE: str = "STORE_UNAVAILABLE"
    CONFIG_ERROR: str = "CONFIG_ERROR"
