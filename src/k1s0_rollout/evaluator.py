"""フィーチャーフラグ評価"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping

import structlog

from .bucket import BucketAssigner
from .cache import FlagCache
from .metrics import flag_evaluations_total
from .models import (
    MAX_ROLLOUT_PERCENTAGE,
    AgentFeature,
    EvaluationReason,
    EvaluationResult,
    FlagRecord,
)

logger = structlog.get_logger(__name__)


def decide(
    record: FlagRecord,
    user_id: str | None,
    assigner: BucketAssigner,
) -> EvaluationResult:
    """フラグとユーザーから判定結果を返す。

    優先順位は固定:
    無効フラグ > 匿名 > 除外 > ターゲット > 全体公開 > バケット判定。
    """
    name = record.name
    if not record.enabled:
        return EvaluationResult(name, False, EvaluationReason.FLAG_DISABLED)

    if not user_id:
        # 匿名はバケットに割り当てられないため、部分公開は常に対象外
        if record.rollout_percentage == MAX_ROLLOUT_PERCENTAGE:
            return EvaluationResult(name, True, EvaluationReason.ANONYMOUS_FULL_ROLLOUT)
        return EvaluationResult(name, False, EvaluationReason.ANONYMOUS_PARTIAL_ROLLOUT)

    if user_id in record.excluded_users:
        return EvaluationResult(name, False, EvaluationReason.USER_EXCLUDED)

    if user_id in record.target_users:
        return EvaluationResult(name, True, EvaluationReason.USER_TARGETED)

    if record.rollout_percentage >= MAX_ROLLOUT_PERCENTAGE:
        return EvaluationResult(name, True, EvaluationReason.FULL_ROLLOUT)

    slot = assigner.assign(user_id, name)
    if slot < record.rollout_percentage:
        return EvaluationResult(name, True, EvaluationReason.IN_ROLLOUT, bucket=slot)
    return EvaluationResult(name, False, EvaluationReason.OUT_OF_ROLLOUT, bucket=slot)


class FlagEvaluator:
    """キャッシュ経由でフラグを評価する。

    評価系の例外はすべて呼び出し元のデフォルト値に変換し、送出しない。
    """

    def __init__(self, cache: FlagCache, assigner: BucketAssigner | None = None) -> None:
        self._cache = cache
        self._assigner = assigner if assigner is not None else BucketAssigner()

    @property
    def assigner(self) -> BucketAssigner:
        return self._assigner

    async def evaluate(
        self,
        flag_name: str,
        user_id: str | None = None,
        default: bool = False,
    ) -> EvaluationResult:
        """理由付きでフラグを評価する。"""
        try:
            record = await self._cache.get(flag_name)
            if record is None:
                result = EvaluationResult(flag_name, default, EvaluationReason.FLAG_NOT_FOUND)
            else:
                result = decide(record, user_id, self._assigner)
        except Exception as e:
            logger.warning("flag evaluation failed", flag=flag_name, error=str(e))
            result = EvaluationResult(flag_name, default, EvaluationReason.ERROR)

        flag_evaluations_total.add(
            1,
            {
                "flag": flag_name,
                "result": str(result.enabled).lower(),
                "reason": result.reason.value,
            },
        )
        return result

    async def is_enabled(
        self,
        flag_name: str,
        user_id: str | None = None,
        default: bool = False,
    ) -> bool:
        result = await self.evaluate(flag_name, user_id, default)
        return result.enabled

    async def get_enabled_features(
        self,
        flag_names: Iterable[str],
        user_id: str | None = None,
        default: bool = False,
        defaults: Mapping[str, bool] | None = None,
    ) -> dict[str, bool]:
        """複数フラグを並行評価する。1 件の失敗は他に影響しない。

        defaults にフラグ名ごとのデフォルト値を指定でき、無いフラグは default を使う。
        """
        names = list(dict.fromkeys(flag_names))
        fallbacks = {name: (defaults or {}).get(name, default) for name in names}
        results = await asyncio.gather(
            *(self.is_enabled(name, user_id, fallbacks[name]) for name in names),
            return_exceptions=True,
        )
        features: dict[str, bool] = {}
        for name, value in zip(names, results):
            if isinstance(value, BaseException):
                if isinstance(value, asyncio.CancelledError):
                    raise value
                logger.warning("flag evaluation failed", flag=name, error=str(value))
                features[name] = fallbacks[name]
            else:
                features[name] = value
        return features

    async def get_agent_features(self, user_id: str | None) -> dict[str, bool]:
        """エージェント機能フラグをまとめて評価する。"""
        return await self.get_enabled_features([f.value for f in AgentFeature], user_id)

    def checker(self, user_id: str | None = None) -> FeatureFlagChecker:
        return FeatureFlagChecker(self, self._cache, user_id)


class FeatureFlagChecker:
    """特定ユーザーに束縛された評価ヘルパー。"""

    def __init__(
        self,
        evaluator: FlagEvaluator,
        cache: FlagCache,
        user_id: str | None,
    ) -> None:
        self._evaluator = evaluator
        self._cache = cache
        self.user_id = user_id

    async def is_enabled(self, flag_name: str, default: bool = False) -> bool:
        return await self._evaluator.is_enabled(flag_name, self.user_id, default)

    async def get_agent_features(self) -> dict[str, bool]:
        if not self.user_id:
            return {}
        return await self._evaluator.get_agent_features(self.user_id)

    def clear_cache(self) -> None:
        self._cache.invalidate_all()
