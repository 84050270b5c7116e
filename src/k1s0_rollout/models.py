"""rollout データモデル"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

MIN_ROLLOUT_PERCENTAGE = 0
MAX_ROLLOUT_PERCENTAGE = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        return _utcnow()
    return datetime.fromisoformat(str(value))


def _clamp_percentage(value: Any) -> int:
    pct = int(value or 0)
    return max(MIN_ROLLOUT_PERCENTAGE, min(MAX_ROLLOUT_PERCENTAGE, pct))


def is_valid_percentage(value: Any) -> bool:
    """ロールアウト率が 0〜100 の整数か確認する。"""
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return MIN_ROLLOUT_PERCENTAGE <= value <= MAX_ROLLOUT_PERCENTAGE


@dataclass(frozen=True)
class FlagRecord:
    """永続化されるフィーチャーフラグ設定。

    キャッシュ上のエントリと共有されるため不変。更新は
    ``dataclasses.replace`` で新しいインスタンスを作る。
    """

    name: str
    description: str = ""
    enabled: bool = False
    rollout_percentage: int = 0
    target_users: frozenset[str] = field(default_factory=frozenset)
    excluded_users: frozenset[str] = field(default_factory=frozenset)
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "enabled": self.enabled,
            "rollout_percentage": self.rollout_percentage,
            "target_users": sorted(self.target_users),
            "excluded_users": sorted(self.excluded_users),
            "metadata": dict(self.metadata),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FlagRecord:
        enabled = data.get("enabled", data.get("is_enabled", False))
        return cls(
            id=str(data.get("id") or uuid.uuid4()),
            name=data["name"],
            description=data.get("description") or "",
            enabled=bool(enabled),
            rollout_percentage=_clamp_percentage(data.get("rollout_percentage")),
            target_users=frozenset(data.get("target_users") or ()),
            excluded_users=frozenset(data.get("excluded_users") or ()),
            metadata=dict(data.get("metadata") or {}),
            created_at=_parse_timestamp(data.get("created_at")),
            updated_at=_parse_timestamp(data.get("updated_at")),
        )


class EvaluationReason(StrEnum):
    """評価結果の理由。"""

    FLAG_NOT_FOUND = "FLAG_NOT_FOUND"
    FLAG_DISABLED = "FLAG_DISABLED"
    ANONYMOUS_FULL_ROLLOUT = "ANONYMOUS_FULL_ROLLOUT"
    ANONYMOUS_PARTIAL_ROLLOUT = "ANONYMOUS_PARTIAL_ROLLOUT"
    USER_EXCLUDED = "USER_EXCLUDED"
    USER_TARGETED = "USER_TARGETED"
    FULL_ROLLOUT = "FULL_ROLLOUT"
    IN_ROLLOUT = "IN_ROLLOUT"
    OUT_OF_ROLLOUT = "OUT_OF_ROLLOUT"
    ERROR = "ERROR"


@dataclass(frozen=True)
class EvaluationResult:
    """フラグ評価結果。bucket はバケット判定を行った場合のみ設定される。"""

    flag_name: str
    enabled: bool
    reason: EvaluationReason
    bucket: int | None = None


@dataclass(frozen=True)
class AdminResult:
    """管理操作の結果。"""

    success: bool
    error: str | None = None
    code: str | None = None
    id: str | None = None

    @classmethod
    def ok(cls, id: str | None = None) -> AdminResult:
        return cls(success=True, id=id)

    @classmethod
    def fail(cls, code: str, error: str) -> AdminResult:
        return cls(success=False, error=error, code=code)


@dataclass(frozen=True)
class RolloutStats:
    """ロールアウト統計。"""

    flag: FlagRecord | None = None
    estimated_reach: int = 0
    target_count: int = 0
    excluded_count: int = 0

    @classmethod
    def of(cls, flag: FlagRecord) -> RolloutStats:
        return cls(
            flag=flag,
            estimated_reach=flag.rollout_percentage if flag.enabled else 0,
            target_count=len(flag.target_users),
            excluded_count=len(flag.excluded_users),
        )


class AgentFeature(StrEnum):
    """エージェント機能のフラグ名。"""

    AGENT_ACTIONS_ENABLED = "agent_actions_enabled"
    AUTO_EXECUTE_LOW_RISK = "auto_execute_low_risk"
    CALENDAR_INTEGRATION = "calendar_integration"
    PARALLEL_EXECUTION = "parallel_execution"
    BATCH_ACTIONS = "batch_actions"
    SMART_SCHEDULING = "smart_scheduling"
    PREDICTIVE_SUGGESTIONS = "predictive_suggestions"
    TEAM_COLLABORATION = "team_collaboration"
    VOICE_COMMANDS = "voice_commands"
    NATURAL_LANGUAGE_INPUT = "natural_language_input"
