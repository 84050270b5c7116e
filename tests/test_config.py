"""設定読み込み・ロガー・サービス組み立てのユニットテスト"""

from pathlib import Path

import pytest
from k1s0_rollout import (
    FeatureFlagService,
    FlagRecord,
    HttpFlagStore,
    InMemoryFlagStore,
    LogSection,
    RolloutConfig,
    RolloutError,
    RolloutErrorCodes,
    configure_logging,
    load_config,
)

BASE_YAML = """
rollout:
  cache_ttl_seconds: 30
store:
  base_url: http://flag-server:8080
  api_key: base-key
log:
  level: DEBUG
"""

ENV_YAML = """
rollout:
  memoize_buckets: false
store:
  api_key: prod-key
"""


def test_default_config() -> None:
    """設定ファイルなしのデフォルト値。"""
    config = RolloutConfig()
    assert config.rollout.cache_ttl_seconds == 60.0
    assert config.rollout.memoize_buckets is True
    assert config.store.base_url == ""
    assert config.log.format == "json"


def test_load_config(tmp_path: Path) -> None:
    """YAML ファイルから設定を読み込む。"""
    base = tmp_path / "config.yaml"
    base.write_text(BASE_YAML, encoding="utf-8")
    config = load_config(base)
    assert config.rollout.cache_ttl_seconds == 30
    assert config.store.base_url == "http://flag-server:8080"
    assert config.log.level == "DEBUG"


def test_load_config_merges_env_file(tmp_path: Path) -> None:
    """環境別設定がディープマージされること。"""
    base = tmp_path / "config.yaml"
    env = tmp_path / "config.prod.yaml"
    base.write_text(BASE_YAML, encoding="utf-8")
    env.write_text(ENV_YAML, encoding="utf-8")
    config = load_config(base, env)
    assert config.rollout.cache_ttl_seconds == 30
    assert config.rollout.memoize_buckets is False
    assert config.store.base_url == "http://flag-server:8080"
    assert config.store.api_key == "prod-key"


def test_load_config_ignores_missing_env_file(tmp_path: Path) -> None:
    """存在しない環境別設定は無視される。"""
    base = tmp_path / "config.yaml"
    base.write_text(BASE_YAML, encoding="utf-8")
    config = load_config(base, tmp_path / "missing.yaml")
    assert config.store.api_key == "base-key"


def test_load_config_missing_file(tmp_path: Path) -> None:
    """存在しないベース設定は CONFIG_ERROR。"""
    with pytest.raises(RolloutError) as exc_info:
        load_config(tmp_path / "nope.yaml")
    assert exc_info.value.code == RolloutErrorCodes.CONFIG_ERROR


def test_load_config_invalid_yaml(tmp_path: Path) -> None:
    """不正な YAML は CONFIG_ERROR。"""
    base = tmp_path / "config.yaml"
    base.write_text("rollout: [unclosed", encoding="utf-8")
    with pytest.raises(RolloutError) as exc_info:
        load_config(base)
    assert exc_info.value.code == RolloutErrorCodes.CONFIG_ERROR


def test_load_config_validation_error(tmp_path: Path) -> None:
    """負の TTL は検証エラー。"""
    base = tmp_path / "config.yaml"
    base.write_text("rollout:\n  cache_ttl_seconds: -5\n", encoding="utf-8")
    with pytest.raises(RolloutError) as exc_info:
        load_config(base)
    assert exc_info.value.code == RolloutErrorCodes.CONFIG_ERROR
    assert exc_info.value.__cause__ is not None


def test_service_from_config_selects_store() -> None:
    """base_url の有無でストア実装が選ばれること。"""
    memory = FeatureFlagService.from_config(RolloutConfig())
    http = FeatureFlagService.from_config(
        RolloutConfig.model_validate({"store": {"base_url": "http://flag-server:8080"}})
    )
    assert isinstance(memory.store, InMemoryFlagStore)
    assert isinstance(http.store, HttpFlagStore)


def test_service_applies_rollout_section() -> None:
    """キャッシュ TTL が設定から反映されること。"""
    config = RolloutConfig.model_validate({"rollout": {"cache_ttl_seconds": 5}})
    service = FeatureFlagService(InMemoryFlagStore(), config)
    assert service.cache.ttl_seconds == 5


def test_configure_logging_json() -> None:
    """JSON 形式のロガーが作成できること。"""
    logger = configure_logging(LogSection(level="INFO", format="json"))
    assert logger.bind(flag="x") is not None


def test_configure_logging_text_default() -> None:
    """デフォルト設定・テキスト形式でロガーが作成できること。"""
    assert configure_logging() is not None
    assert configure_logging(LogSection(level="DEBUG", format="text")) is not None


async def test_service_memoize_disabled_reaches_evaluator() -> None:
    """memoize_buckets=false が評価器のバケット割り当てに反映されること。"""
    config = RolloutConfig.model_validate(
        {"rollout": {"memoize_buckets": False, "bucket_memo_size": 50}}
    )
    service = FeatureFlagService(InMemoryFlagStore(), config)
    assert service.evaluator.assigner is service.assigner
    await service.admin.create_flag(FlagRecord(name="x", enabled=True, rollout_percentage=50))
    for i in range(10):
        await service.evaluator.is_enabled("x", f"user-{i}")
    assert len(service.assigner) == 0


def test_service_applies_bucket_memo_size() -> None:
    """bucket_memo_size がメモ上限に反映されること。"""
    config = RolloutConfig.model_validate({"rollout": {"bucket_memo_size": 3}})
    service = FeatureFlagService(InMemoryFlagStore(), config)
    for i in range(10):
        service.assigner.assign(f"user-{i}", "flag")
    assert len(service.assigner) == 3
