# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_identity

import logging
import os
import re
import sys
from pathlib import Path
from typing import Any

from loguru import logger
from opentelemetry import trace

__all__ = ["logger", "configure_logging"]

# access_token=... in URLs and form bodies, "access_token": "..." in JSON bodies
_TOKEN_PATTERN = re.compile(r"""(access_token["']?\s*[=:]\s*["']?)([^&"'\s,}]+)""", re.IGNORECASE)


class InterceptHandler(logging.Handler):
    """
    Redirects standard logging messages (httpx, authlib) to Loguru.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno  # type: ignore[assignment]

        # Find caller from where originated the logged message
        frame = logging.currentframe()
        depth = 2
        while frame and (frame.f_code.co_filename == logging.__file__ or frame.f_code.co_filename == __file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def trace_id_injector(record: dict[str, Any]) -> None:
    """
    Injects OpenTelemetry trace_id and span_id into the log record.
    Used as a patcher for Loguru.
    """
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        record["extra"]["trace_id"] = format(ctx.trace_id, "032x")
        record["extra"]["span_id"] = format(ctx.span_id, "016x")


def redact_tokens(record: dict[str, Any]) -> None:
    """
    Truncates access token values in the log message to half their length.
    """
    record["message"] = _TOKEN_PATTERN.sub(
        lambda m: f"{m.group(1)}{m.group(2)[: len(m.group(2)) // 2]}...", record["message"]
    )


def patch_record(record: dict[str, Any]) -> None:
    """Loguru patcher: token redaction, then trace context."""
    redact_tokens(record)
    trace_id_injector(record)


def configure_logging() -> None:
    """
    Configures the logger from AUTHPROXY_LOG_LEVEL and AUTHPROXY_LOG_JSON.
    Call this again to reload configuration if env vars change.
    """
    log_level = os.getenv("AUTHPROXY_LOG_LEVEL", "INFO").upper()
    log_json = os.getenv("AUTHPROXY_LOG_JSON", "false").lower() == "true"

    try:
        logger.level(log_level)
    except ValueError:
        log_level = "INFO"

    logger.configure(handlers=[], patcher=patch_record)  # type: ignore[arg-type]

    if log_json:
        # JSON logs to stdout for containerized proxies
        logger.add(sys.stdout, level=log_level, serialize=True)
    else:
        format_str = (
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        )
        logger.add(sys.stderr, level=log_level, format=format_str)

    # File sink is best effort: read-only containers skip it
    try:
        Path("logs").mkdir(parents=True, exist_ok=True)
        logger.add(
            "logs/app.log",
            rotation="500 MB",
            retention="10 days",
            serialize=True,
            enqueue=True,
            level=log_level,
        )
    except (PermissionError, OSError):
        pass

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    numeric_level = logging.getLevelName(log_level)
    if isinstance(numeric_level, int):
        logging.getLogger().setLevel(numeric_level)
    else:
        logging.getLogger().setLevel(logging.INFO)


# Initialize on import
configure_logging()
