"""rollout テスト共通フィクスチャ"""

from __future__ import annotations

import pytest
from k1s0_rollout import FeatureFlagService, FlagRecord, InMemoryFlagStore


class FakeClock:
    """テスト用の手動クロック。"""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_flag(
    name: str,
    enabled: bool = True,
    rollout_percentage: int = 0,
    target_users: set[str] | None = None,
    excluded_users: set[str] | None = None,
) -> FlagRecord:
    return FlagRecord(
        name=name,
        description=f"Description for {name}",
        enabled=enabled,
        rollout_percentage=rollout_percentage,
        target_users=frozenset(target_users or ()),
        excluded_users=frozenset(excluded_users or ()),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryFlagStore:
    return InMemoryFlagStore()


@pytest.fixture
def service(store: InMemoryFlagStore) -> FeatureFlagService:
    return FeatureFlagService(store)
