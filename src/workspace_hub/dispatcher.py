# =============================================================================
# Lifecycle Dispatcher
# =============================================================================

from __future__ import annotations

import asyncio
from uuid import uuid4

from loguru import logger

from .errors import Error, ErrorType, Result
from .logging_config import log_task_failure
from .models import DASHBOARD_ID
from .runtime import RuntimeCallError, WindowRuntime
from .tracker import OpenWindowTracker

DEFAULT_SETTLE_DELAY = 0.5


class LifecycleDispatcher:
    """
    Issues create/close/test requests and schedules one tracker refresh each.

    The refresh runs ``settle_delay`` seconds after the request completes,
    because the runtime's window registration is not synchronously
    observable. This is best-effort polling: a refresh that fails after a
    successful request only leaves the tracker stale.
    """

    def __init__(self, runtime: WindowRuntime, tracker: OpenWindowTracker,
                 settle_delay: float = DEFAULT_SETTLE_DELAY):
        self.runtime = runtime
        self.tracker = tracker
        self.settle_delay = settle_delay
        self._pending: set[asyncio.Task] = set()

    async def create(self, window_id: str) -> Result[str]:
        """Create or focus ``window_id``; the runtime decides which."""
        if not window_id:
            return _rejected(ErrorType.CREATE_ERROR, "create", "Window id is required", window_id)
        return await self._dispatch(
            "create", window_id, ErrorType.CREATE_ERROR,
            self.runtime.create_window(window_id),
        )

    async def close(self, window_id: str) -> Result[str]:
        """Close ``window_id``. The dashboard's own window is refused up front."""
        if window_id == DASHBOARD_ID:
            return _rejected(
                ErrorType.CLOSE_ERROR, "close",
                "The dashboard window cannot be closed from the dashboard", window_id,
            )
        if not window_id:
            return _rejected(ErrorType.CLOSE_ERROR, "close", "Window id is required", window_id)
        return await self._dispatch(
            "close", window_id, ErrorType.CLOSE_ERROR,
            self.runtime.close_window(window_id),
        )

    async def test_shortcut(self, key: str) -> Result[str]:
        """Run the same creation path a pressed shortcut would."""
        if not key:
            return _rejected(ErrorType.SHORTCUT_ERROR, "test_shortcut", "Shortcut key is required", key)
        return await self._dispatch(
            "test_shortcut", key, ErrorType.SHORTCUT_ERROR,
            self.runtime.test_shortcut(key),
        )

    async def _dispatch(self, action: str, target: str, error_type: ErrorType, call) -> Result[str]:
        op_trace_id = str(uuid4())
        logger.info(
            f"Dispatching {action}",
            operation=f"dispatch_{action}",
            status="started",
            trace_id=op_trace_id,
            target=target,
        )

        try:
            ack = await call
        except RuntimeCallError as e:
            logger.error(
                f"{action} failed",
                operation=f"dispatch_{action}",
                status="failed",
                trace_id=op_trace_id,
                target=target,
                error=str(e),
            )
            self.schedule_refresh(op_trace_id, succeeded=False)
            return Result.err(Error(
                error_type=error_type,
                message=str(e),
                context={"target": target, "call": e.call},
                original_exception=e,
            ))

        logger.info(
            f"{action} acknowledged",
            operation=f"dispatch_{action}",
            status="success",
            trace_id=op_trace_id,
            target=target,
            ack=ack,
        )
        self.schedule_refresh(op_trace_id, succeeded=True)
        return Result.ok(ack)

    def schedule_refresh(self, op_trace_id: str | None = None, succeeded: bool = True) -> asyncio.Task:
        """Queue one settle-then-refresh; pending refreshes are not coalesced."""
        task = asyncio.get_running_loop().create_task(
            self._settle_then_refresh(op_trace_id, succeeded)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _settle_then_refresh(self, op_trace_id: str | None, succeeded: bool) -> None:
        await asyncio.sleep(self.settle_delay)
        result = await self.tracker.refresh()
        if result.is_err() and succeeded:
            logger.info(
                "Open window state may be stale after a successful operation",
                operation="scheduled_refresh",
                status="stale",
                trace_id=op_trace_id,
            )

    async def wait_for_refreshes(self) -> None:
        """Wait until every scheduled refresh has completed."""
        while self._pending:
            results = await asyncio.gather(*list(self._pending), return_exceptions=True)
            for result in results:
                if isinstance(result, BaseException):
                    log_task_failure(result, "scheduled_refresh")


def _rejected(error_type: ErrorType, action: str, message: str, target: str | None) -> Result:
    logger.warning(
        message,
        operation=f"dispatch_{action}",
        status="rejected",
        target=target,
    )
    return Result.err(Error(
        error_type=error_type,
        message=message,
        context={"target": target, "rejected": True},
    ))
