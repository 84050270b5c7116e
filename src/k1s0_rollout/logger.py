"""structlog ロガー設定"""

from __future__ import annotations

import logging
import sys

import structlog

from .config import LogSection


def configure_logging(config: LogSection | None = None) -> structlog.stdlib.BoundLogger:
    """structlog を設定し、rollout 用のロガーを返す。

    ライブラリ内の各モジュールは structlog.get_logger で取得するため、
    ホストアプリケーションが独自に structlog を設定している場合は呼ばなくてよい。
    """
    config = config or LogSection()
    log_level = getattr(logging, config.level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    renderer: structlog.types.Processor
    if config.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return structlog.stdlib.get_logger("k1s0_rollout")
