"""Logging setup for the z-irgen CLI: stdlib loggers rendered by structlog."""

from __future__ import annotations

import logging.config
import os

import structlog

# Applied to every record, whether it comes from structlog or a stdlib logger
_PRE_CHAIN: list[structlog.types.Processor] = [
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="%H:%M:%S"),
    structlog.processors.format_exc_info,
]


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def setup_logging(verbose: bool = False) -> None:
    """Route ``z_ir_generator.*`` logs to stderr.

    ZIRGEN_LOG_LEVEL overrides the level (INFO, or DEBUG with ``-v``);
    ZIRGEN_LOG_FORMAT picks ``console`` or ``json``. Stdout stays reserved
    for progress lines and dumped databases.
    """
    level = os.environ.get("ZIRGEN_LOG_LEVEL", "DEBUG" if verbose else "INFO").upper()
    log_format = os.environ.get("ZIRGEN_LOG_FORMAT", "console").lower()

    structlog.configure(
        processors=_PRE_CHAIN + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "irgen": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": _PRE_CHAIN,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        _renderer(log_format),
                    ],
                },
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "irgen",
                },
            },
            # Third-party loggers stay at WARNING; only this package follows -v
            "root": {"handlers": ["stderr"], "level": "WARNING"},
            "loggers": {"z_ir_generator": {"level": level}},
        }
    )
