"""Structured logging for the CLI: structlog events rendered by stdlib handlers."""

from __future__ import annotations

import logging
import logging.config

import structlog

_RENDERERS = {
    "console": lambda: structlog.dev.ConsoleRenderer(colors=False),
    "json": structlog.processors.JSONRenderer,
}


def setup_logging(level: str = "WARNING", log_format: str = "console") -> None:
    """Route structlog and stdlib records through one stderr handler.

    stdout carries reports (``check-deps --json`` in particular), so nothing
    is ever logged there. *log_format* is ``console`` or ``json``; anything
    else falls back to ``console``.
    """
    level = level.upper()
    renderer = _RENDERERS.get(log_format, _RENDERERS["console"])()

    pre_chain: list[structlog.types.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "sleek": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": pre_chain,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                },
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "sleek",
                },
            },
            "loggers": {
                "cargo_sleek": {"handlers": ["stderr"], "level": level, "propagate": False},
            },
        }
    )
