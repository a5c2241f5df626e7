"""structlog configuration for the cargo-wasm command line."""

from __future__ import annotations

import logging
import logging.config
import os
import sys

import structlog

LOG_FORMATS = ("console", "json")

# Third-party loggers that are noisy at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore")


def _pre_chain(log_format: str) -> list[structlog.types.Processor]:
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
    ]
    # timestamps only in json output
    if log_format == "json":
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    processors += [
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    return processors


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def setup_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Route structlog events and stdlib records through one stderr handler.

    *level* and *fmt* override ``CARGO_WASM_LOG_LEVEL`` (default INFO) and
    ``CARGO_WASM_LOG_FORMAT`` (``console`` or ``json``, default console).
    stdout is left to command output.
    """
    log_level = (level or os.environ.get("CARGO_WASM_LOG_LEVEL") or "INFO").upper()
    log_format = (fmt or os.environ.get("CARGO_WASM_LOG_FORMAT") or "console").lower()
    if log_format not in LOG_FORMATS:
        raise ValueError(f"Unknown log format {log_format!r}, expected one of {LOG_FORMATS}")
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"Unknown log level {log_level!r}")

    pre_chain = _pre_chain(log_format)
    structlog.configure(
        processors=pre_chain + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    loggers = {name: {"level": "WARNING"} for name in _QUIET_LOGGERS}
    loggers["cargo_wasm"] = {"level": log_level}
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "cargo_wasm": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": pre_chain,
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
                    "formatter": "cargo_wasm",
                },
            },
            "root": {"handlers": ["stderr"], "level": log_level},
            "loggers": loggers,
        }
    )
