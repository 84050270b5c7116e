"""FeatureFlagService 実装"""

from __future__ import annotations

from .admin import FlagAdmin
from .bucket import BucketAssigner
from .cache import FlagCache
from .config import RolloutConfig
from .evaluator import FlagEvaluator
from .http_store import HttpFlagStore
from .memory import InMemoryFlagStore
from .store import FlagStore


class FeatureFlagService:
    """キャッシュ・バケット割り当て・評価・管理操作を束ねる。

    プロセスごとに 1 インスタンスを生成し、呼び出し側へ注入して使う。
    """

    def __init__(self, store: FlagStore, config: RolloutConfig | None = None) -> None:
        self.config = config or RolloutConfig()
        self.store = store
        self.assigner = BucketAssigner(
            memoize=self.config.rollout.memoize_buckets,
            max_entries=self.config.rollout.bucket_memo_size,
        )
        self.cache = FlagCache(store, ttl_seconds=self.config.rollout.cache_ttl_seconds)
        self.evaluator = FlagEvaluator(self.cache, self.assigner)
        self.admin = FlagAdmin(store, self.cache, self.assigner)

    @classmethod
    def from_config(cls, config: RolloutConfig) -> FeatureFlagService:
        """設定からストアを選択して生成する。"""
        store: FlagStore
        if config.store.base_url:
            store = HttpFlagStore(config.store)
        else:
            store = InMemoryFlagStore()
        return cls(store, config)
