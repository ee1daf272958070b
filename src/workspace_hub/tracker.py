# =============================================================================
# Open Window Tracker
# =============================================================================

from __future__ import annotations

import time
from datetime import datetime
from types import MappingProxyType
from typing import Mapping
from uuid import uuid4

from loguru import logger

from .catalog import WindowCatalog
from .errors import Error, ErrorType, Result
from .models import DASHBOARD_ID, WindowDefinition
from .runtime import RuntimeCallError, WindowRuntime

OpenWindowSet = Mapping[str, "WindowDefinition | None"]


class OpenWindowTracker:
    """
    Cache of which windows the runtime reports as open.

    The set is only ever replaced wholesale by ``refresh``; local actions
    never patch it. The swap is a single reference assignment, so readers
    never observe a half-built set. Overlapping refreshes resolve by
    completion order: whichever response lands last wins.
    """

    def __init__(self, runtime: WindowRuntime, catalog: WindowCatalog | None = None,
                 failure_threshold: int = 3):
        self.runtime = runtime
        self.catalog = catalog
        self.failure_threshold = failure_threshold
        self._open: OpenWindowSet = MappingProxyType({DASHBOARD_ID: None})
        self.consecutive_failures = 0
        self.last_refreshed_at: datetime | None = None

    @property
    def open_windows(self) -> OpenWindowSet:
        return self._open

    def is_open(self, window_id: str) -> bool:
        """Answer from the last successful refresh only."""
        return window_id in self._open

    @property
    def failing_repeatedly(self) -> bool:
        return self.consecutive_failures >= self.failure_threshold

    def _snapshot(self, window_ids: list[str]) -> dict[str, WindowDefinition | None]:
        snapshot: dict[str, WindowDefinition | None] = {}
        for window_id in window_ids:
            snapshot[window_id] = self.catalog.get(window_id) if self.catalog else None
        # The dashboard's own window is always a member
        snapshot.setdefault(DASHBOARD_ID, self.catalog.get(DASHBOARD_ID) if self.catalog else None)
        return snapshot

    async def refresh(self) -> Result[OpenWindowSet]:
        """
        Replace the tracked set with the runtime's current report.

        On failure the last known set is kept untouched.
        """
        op_trace_id = str(uuid4())
        start_time = time.perf_counter()

        try:
            window_ids = await self.runtime.get_open_windows()
        except RuntimeCallError as e:
            self.consecutive_failures += 1
            error = Error(
                error_type=ErrorType.RUNTIME_UNAVAILABLE,
                message=f"Open window refresh failed: {e}",
                context={"call": e.call},
                original_exception=e,
            )
            logger.warning(
                "Open window refresh failed, keeping last known state",
                operation="tracker_refresh",
                status="stale",
                trace_id=op_trace_id,
                error=str(e),
                metrics={"consecutive_failures": self.consecutive_failures},
            )
            return Result.err(error)

        self._open = MappingProxyType(self._snapshot(list(window_ids)))
        self.consecutive_failures = 0
        self.last_refreshed_at = datetime.now()

        logger.debug(
            "Open windows refreshed",
            operation="tracker_refresh",
            status="success",
            trace_id=op_trace_id,
            open_windows=sorted(self._open),
            metrics={
                "open_count": len(self._open),
                "duration_ms": int((time.perf_counter() - start_time) * 1000),
            },
        )
        return Result.ok(self._open)
