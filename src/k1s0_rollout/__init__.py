"""k1s0 rollout library."""

from .admin import FlagAdmin
from .bucket import BucketAssigner, bucket
from .cache import CacheEntry, FlagCache
from .config import LogSection, RolloutConfig, RolloutSection, StoreSection, load_config
from .evaluator import FeatureFlagChecker, FlagEvaluator, decide
from .exceptions import RolloutError, RolloutErrorCodes
from .http_store import HttpFlagStore
from .logger import configure_logging
from .memory import InMemoryFlagStore
from .models import (
    AdminResult,
    AgentFeature,
    EvaluationReason,
    EvaluationResult,
    FlagRecord,
    RolloutStats,
)
from .service import FeatureFlagService
from .store import FlagStore

__all__ = [
    "AdminResult",
    "AgentFeature",
    "BucketAssigner",
    "CacheEntry",
    "EvaluationReason",
    "EvaluationResult",
    "FeatureFlagChecker",
    "FeatureFlagService",
    "FlagAdmin",
    "FlagCache",
    "FlagEvaluator",
    "FlagRecord",
    "FlagStore",
    "HttpFlagStore",
    "InMemoryFlagStore",
    "LogSection",
    "RolloutConfig",
    "RolloutError",
    "RolloutErrorCodes",
    "RolloutSection",
    "RolloutStats",
    "StoreSection",
    "bucket",
    "configure_logging",
    "decide",
    "load_config",
]
