"""OpenTelemetry フラグ評価メトリクス定義"""

from __future__ import annotations

from opentelemetry import metrics

_meter = metrics.get_meter("k1s0.rollout", version="0.1.0")

flag_evaluations_total = _meter.create_counter(
    name="flag_evaluations_total",
    description="Total number of feature flag evaluations",
    unit="1",
)

flag_cache_hits_total = _meter.create_counter(
    name="flag_cache_hits_total",
    description="Total number of flag cache hits",
    unit="1",
)

flag_cache_misses_total = _meter.create_counter(
    name="flag_cache_misses_total",
    description="Total number of flag cache misses (including expired entries)",
    unit="1",
)

flag_store_errors_total = _meter.create_counter(
    name="flag_store_errors_total",
    description="Total number of flag store failures",
    unit="1",
)
