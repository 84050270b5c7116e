"""FlagStore HTTP REST 実装"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx

from .config import StoreSection
from .exceptions import RolloutError, RolloutErrorCodes
from .models import FlagRecord
from .store import FlagStore


def _encode_field(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class HttpFlagStore(FlagStore):
    """httpx を使ったフラグテーブルサービスのクライアント。"""

    def __init__(self, config: StoreSection) -> None:
        if not config.base_url:
            raise RolloutError(
                RolloutErrorCodes.CONFIG_ERROR,
                "store.base_url is required for HttpFlagStore",
            )
        self._config = config
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if config.api_key:
            headers["X-API-Key"] = config.api_key
        self._headers = headers

    def _make_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._config.base_url,
            headers=self._headers,
            timeout=self._config.timeout_seconds,
        )

    def _handle_error(self, resp: httpx.Response, context: str) -> None:
        if resp.status_code == 404:
            raise RolloutError(
                code=RolloutErrorCodes.NOT_FOUND,
                message=f"{context}: flag not found",
            )
        if resp.status_code == 409:
            raise RolloutError(
                code=RolloutErrorCodes.CONFLICT,
                message=f"{context}: flag already exists",
            )
        if resp.status_code >= 400:
            raise RolloutError(
                code=RolloutErrorCodes.STORE_UNAVAILABLE,
                message=f"{context}: HTTP {resp.status_code}: {resp.text}",
            )

    async def read_flag(self, name: str) -> FlagRecord | None:
        try:
            async with self._make_client() as client:
                resp = await client.get(f"/api/v1/flags/{quote(name, safe='')}")
            if resp.status_code == 404:
                return None
            self._handle_error(resp, f"read_flag({name})")
            return FlagRecord.from_dict(resp.json())
        except RolloutError:
            raise
        except Exception as e:
            raise RolloutError(
                code=RolloutErrorCodes.STORE_UNAVAILABLE,
                message=f"Failed to read flag: {e}",
                cause=e,
            ) from e

    async def write_flag(self, record: FlagRecord) -> None:
        try:
            async with self._make_client() as client:
                resp = await client.post("/api/v1/flags", json=record.to_dict())
            self._handle_error(resp, f"write_flag({record.name})")
        except RolloutError:
            raise
        except Exception as e:
            raise RolloutError(
                code=RolloutErrorCodes.STORE_UNAVAILABLE,
                message=f"Failed to write flag: {e}",
                cause=e,
            ) from e

    async def patch_flag(self, name: str, fields: dict[str, Any]) -> None:
        body = {key: _encode_field(value) for key, value in fields.items()}
        try:
            async with self._make_client() as client:
                resp = await client.patch(f"/api/v1/flags/{quote(name, safe='')}", json=body)
            self._handle_error(resp, f"patch_flag({name})")
        except RolloutError:
            raise
        except Exception as e:
            raise RolloutError(
                code=RolloutErrorCodes.STORE_UNAVAILABLE,
                message=f"Failed to patch flag: {e}",
                cause=e,
            ) from e

    async def list_flags(self) -> list[FlagRecord]:
        try:
            async with self._make_client() as client:
                resp = await client.get("/api/v1/flags")
            self._handle_error(resp, "list_flags")
            data = resp.json()
            items: list[dict[str, Any]] = data.get("flags", []) if isinstance(data, dict) else data
            return [FlagRecord.from_dict(item) for item in items]
        except RolloutError:
            raise
        except Exception as e:
            raise RolloutError(
                code=RolloutErrorCodes.STORE_UNAVAILABLE,
                message=f"Failed to list flags: {e}",
                cause=e,
            ) from e
