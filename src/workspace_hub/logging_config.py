# =============================================================================
# Structured Logging Setup (JSONL format)
# =============================================================================

from __future__ import annotations

import asyncio
import json
import sys
import traceback
from contextvars import ContextVar
from pathlib import Path

import platformdirs
from loguru import logger

APP_NAME = "workspace-hub"

# Correlation ID for async operations
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)

_RESERVED_EXTRA = ("operation", "status", "trace_id", "metrics")


def build_log_entry(record) -> dict:
    """Translate a loguru record into the JSONL schema shared by all sinks."""
    log_entry = {
        "timestamp": record["time"].strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
        "level": record["level"].name.lower(),
        "component": record["function"],
        "operation": record["extra"].get("operation", "unknown"),
        "operation_status": record["extra"].get("status", None),
        "trace_id": record["extra"].get("trace_id") or trace_id_var.get(),
        "message": record["message"],
        "context": {k: v for k, v in record["extra"].items() if k not in _RESERVED_EXTRA},
        "metrics": record["extra"].get("metrics", {}),
        "error": None,
    }

    if record["exception"]:
        exc_type, exc_value, exc_tb = record["exception"]
        tb_lines = traceback.format_tb(exc_tb) if exc_tb else []

        log_entry["error"] = {
            "type": exc_type.__name__ if exc_type else "Unknown",
            "message": str(exc_value) if exc_value else "Unknown error",
            "traceback_lines": tb_lines,
        }

    return log_entry


def json_sink(message) -> None:
    """JSONL sink - writes to stderr (visible in the iTerm2 Script Console)."""
    try:
        sys.stderr.write(json.dumps(build_log_entry(message.record), default=str) + "\n")
    except (OSError, TypeError, ValueError) as e:
        try:
            sys.stderr.write(f"[LOG_ERROR] Failed to write log: {e}\n")
        except OSError:
            pass


def setup_logger(level: str = "INFO", log_dir: Path | None = None):
    """Configure Loguru for machine-readable JSONL output."""
    logger.remove()

    logger.add(json_sink, level=level)

    # macOS: ~/Library/Logs/workspace-hub/
    # Linux: ~/.local/state/workspace-hub/log/
    if log_dir is None:
        log_dir = Path(platformdirs.user_log_dir(appname=APP_NAME, ensure_exists=True))
    else:
        log_dir.mkdir(parents=True, exist_ok=True)

    logger.add(
        str(log_dir / "hub.jsonl"),
        format="{message}",
        serialize=True,
        rotation="10 MB",
        retention="7 days",
        compression="gz",
        level="DEBUG",
    )

    logger.debug(
        "Logger initialized",
        operation="setup_logger",
        status="success",
        log_dir=str(log_dir),
    )
    return logger


def log_task_failure(exc: BaseException | None, operation: str) -> None:
    """Log an exception that ended a background task; cancellation is not a failure."""
    if exc is None or isinstance(exc, asyncio.CancelledError):
        return
    logger.opt(exception=exc).error(
        "Background task failed",
        operation=operation,
        status="failed",
        error=str(exc),
        error_type=type(exc).__name__,
    )


def log_done_task(task: asyncio.Task, operation: str) -> None:
    """Done callback form of ``log_task_failure``."""
    if task.cancelled():
        return
    log_task_failure(task.exception(), operation)
