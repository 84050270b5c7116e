"""rollout 設定の型定義と読み込み"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import RolloutError, RolloutErrorCodes


class RolloutSection(BaseModel):
    """評価・キャッシュ設定。"""

    cache_ttl_seconds: float = Field(default=60.0, ge=0.0)
    memoize_buckets: bool = True
    bucket_memo_size: int = Field(default=10_000, ge=1)


class StoreSection(BaseModel):
    """フラグストア接続設定。base_url が空ならインメモリストアを使う。"""

    base_url: str = ""
    timeout_seconds: float = Field(default=10.0, gt=0.0)
    api_key: str = ""


class LogSection(BaseModel):
    """ログ設定。"""

    level: str = "INFO"
    format: Literal["json", "text"] = "json"


class RolloutConfig(BaseModel):
    """rollout ライブラリ設定全体。"""

    rollout: RolloutSection = Field(default_factory=RolloutSection)
    store: StoreSection = Field(default_factory=StoreSection)
    log: LogSection = Field(default_factory=LogSection)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise RolloutError(
            code=RolloutErrorCodes.CONFIG_ERROR,
            message=f"Failed to read config file: {path}",
            cause=e,
        ) from e
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise RolloutError(
            code=RolloutErrorCodes.CONFIG_ERROR,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    if not isinstance(data, dict):
        raise RolloutError(
            code=RolloutErrorCodes.CONFIG_ERROR,
            message=f"Config root must be a mapping: {path}",
        )
    return data


def load_config(base_path: Path, env_path: Path | None = None) -> RolloutConfig:
    """設定ファイルを読み込んで RolloutConfig を返す。

    env_path が存在する場合はベース設定にディープマージする。
    """
    data = _read_yaml(base_path)
    if env_path is not None and env_path.exists():
        data = _deep_merge(data, _read_yaml(env_path))
    try:
        return RolloutConfig.model_validate(data)
    except ValidationError as e:
        raise RolloutError(
            code=RolloutErrorCodes.CONFIG_ERROR,
            message=f"Config validation failed: {e}",
            cause=e,
        ) from e
