# =============================================================================
# Error Handling Types (Result + ErrorReport)
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

from loguru import logger

T = TypeVar("T")


class ErrorType(Enum):
    # Config files
    FILE_NOT_FOUND = "file_not_found"
    PARSE_ERROR = "parse_error"
    VALIDATION_ERROR = "validation_error"
    # Window registry and lifecycle
    CONFIG_UNAVAILABLE = "config_unavailable"
    RUNTIME_UNAVAILABLE = "runtime_unavailable"
    CREATE_ERROR = "create_error"
    CLOSE_ERROR = "close_error"
    SHORTCUT_ERROR = "shortcut_error"
    STATUS_ERROR = "status_error"


@dataclass
class Error:
    error_type: ErrorType
    message: str
    context: dict = field(default_factory=dict)
    original_exception: Exception | None = None


@dataclass
class Result(Generic[T]):
    success: bool
    value: T | None = None
    error: Error | None = None

    @staticmethod
    def ok(value: T = None) -> "Result[T]":
        return Result(success=True, value=value)

    @staticmethod
    def err(error: Error) -> "Result[T]":
        return Result(success=False, error=error)

    def is_ok(self) -> bool:
        return self.success

    def is_err(self) -> bool:
        return not self.success


@dataclass
class ErrorReport:
    errors: list[Error] = field(default_factory=list)
    warnings: list[Error] = field(default_factory=list)

    def add_error(self, error: Error):
        self.errors.append(error)
        logger.error(
            error.message,
            operation="error_report",
            status="error",
            error_type=error.error_type.value,
            **error.context,
        )

    def add_warning(self, error: Error):
        self.warnings.append(error)
        logger.warning(
            error.message,
            operation="error_report",
            status="warning",
            error_type=error.error_type.value,
            **error.context,
        )

    def collect_result(self, result: Result, context: str = "") -> bool:
        """Collect error from Result into report if failed."""
        if result.is_err():
            if context:
                result.error.context.setdefault("source", context)
            self.add_error(result.error)
            return False
        return True

    def log_summary(self, op_trace_id: str):
        """Log final summary for the dashboard session."""
        logger.info(
            "Operation complete",
            operation="error_report",
            status="complete",
            trace_id=op_trace_id,
            metrics={
                "total_errors": len(self.errors),
                "total_warnings": len(self.warnings),
            },
        )
