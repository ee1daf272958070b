# =============================================================================
# Dashboard (Orchestrator)
# =============================================================================
# View state and actions of the control panel. Rendering to iTerm2 alerts
# lives in dashboard_ui; everything here is plain state so it can be rebuilt
# from one catalog load plus one refresh.

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from loguru import logger

from .catalog import WindowCatalog, load_catalog
from .dispatcher import LifecycleDispatcher
from .errors import Error, ErrorType, Result
from .models import (
    ALL_CATEGORIES,
    DASHBOARD_ID,
    UNCATEGORIZED,
    WindowCategory,
    WindowDefinition,
    WindowLaunch,
)
from .runtime import RuntimeCallError, WindowRuntime
from .shortcuts import ShortcutBridge, ShortcutStatus, format_shortcut
from .tracker import OpenWindowTracker


class DashboardState(Enum):
    LOADING = "loading"
    ERROR = "error"
    READY = "ready"


@dataclass(frozen=True)
class DashboardRow:
    definition: WindowDefinition
    is_open: bool
    category: WindowCategory | None
    shortcut_label: str | None = None

    @property
    def status(self) -> str:
        return "open" if self.is_open else "closed"

    @property
    def label(self) -> str:
        text = f"{self.definition.display_name} [{self.status}]"
        if self.shortcut_label:
            text += f" ({self.shortcut_label})"
        return text


class Dashboard:
    """Composes catalog, tracker, dispatcher and shortcut bridge."""

    def __init__(self, runtime: WindowRuntime, tracker: OpenWindowTracker,
                 dispatcher: LifecycleDispatcher, bridge: ShortcutBridge,
                 shortcut_modifiers: list[str] | None = None,
                 initial_category: str = ALL_CATEGORIES,
                 on_catalog_loaded: Callable[[WindowCatalog], None] | None = None):
        self.runtime = runtime
        self.tracker = tracker
        self.dispatcher = dispatcher
        self.bridge = bridge
        self.shortcut_modifiers = shortcut_modifiers or []
        self.selected_category = initial_category or ALL_CATEGORIES
        self.on_catalog_loaded = on_catalog_loaded
        self.catalog: WindowCatalog | None = None
        self.catalog_error: Error | None = None
        self.notices: deque[str] = deque(maxlen=5)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> DashboardState:
        if self.catalog is not None:
            return DashboardState.READY
        if self.catalog_error is not None:
            return DashboardState.ERROR
        return DashboardState.LOADING

    @property
    def shortcut_status(self) -> ShortcutStatus:
        return self.bridge.last_status

    def notify(self, message: str) -> None:
        """Queue a non-blocking notice for the next render."""
        self.notices.append(message)

    def take_notices(self) -> list[str]:
        notices = list(self.notices)
        self.notices.clear()
        return notices

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def start(self, check_shortcuts: bool = True) -> None:
        """Load the catalog, take the first snapshot and query shortcuts."""
        await self.load_catalog()
        await self.refresh()
        if check_shortcuts:
            await self.check_shortcuts()

    async def load_catalog(self) -> Result[WindowCatalog]:
        """Fetch the catalog; callable again as an explicit reload."""
        result = await load_catalog(self.runtime)
        if result.is_err():
            self.catalog_error = result.error
            if self.catalog is None:
                logger.warning(
                    "Dashboard has no catalog yet",
                    operation="dashboard_load_catalog",
                    status="error",
                    error=result.error.message,
                )
            else:
                self.notify(f"Reload failed, keeping previous catalog: {result.error.message}")
            return result

        previous = self.catalog
        self.catalog = result.value
        self.catalog_error = None
        self.tracker.catalog = self.catalog
        self.bridge.catalog = self.catalog
        if not self._category_known(self.selected_category):
            self.selected_category = ALL_CATEGORIES
        if self.on_catalog_loaded is not None:
            self.on_catalog_loaded(self.catalog)
        if previous is not None:
            await self._retheme_open_windows(previous)
        return result

    async def _retheme_open_windows(self, previous: WindowCatalog) -> None:
        """Re-apply the theme of every open window whose configured theme changed."""
        for window_id in self.open_window_ids(closable_only=True):
            old, new = previous.get(window_id), self.catalog.get(window_id)
            if old is None or new is None or _theme_of(old) == _theme_of(new):
                continue
            launch = WindowLaunch.for_definition(new)
            try:
                await self.runtime.retheme_window(window_id, launch)
            except RuntimeCallError as e:
                logger.warning(
                    "Re-theme failed",
                    operation="dashboard_retheme",
                    status="failed",
                    window_id=window_id,
                    theme=launch.theme,
                    error=str(e),
                )
                self.notify(f"Could not apply theme to {new.display_name}: {e}")

    async def refresh(self) -> None:
        """On-demand tracker refresh; failures only surface when repeated."""
        result = await self.tracker.refresh()
        if result.is_err() and self.tracker.failing_repeatedly:
            logger.warning(
                "Open window state repeatedly unavailable",
                operation="dashboard_refresh",
                status="stale",
                metrics={"consecutive_failures": self.tracker.consecutive_failures},
            )

    # -------------------------------------------------------------------------
    # View
    # -------------------------------------------------------------------------

    def _category_known(self, category_id: str) -> bool:
        if category_id == ALL_CATEGORIES:
            return True
        if self.catalog is None:
            return False
        if self.catalog.category(category_id) is not None:
            return True
        return any(d.category == category_id for d in self.catalog.definitions)

    def category_options(self) -> list[tuple[str, str]]:
        """(id, display name) pairs, "all" first."""
        options = [(ALL_CATEGORIES, "All")]
        if self.catalog is None:
            return options
        options.extend((c.id, c.name) for c in self.catalog.categories)
        if any(d.category == UNCATEGORIZED for d in self.catalog.definitions):
            options.append((UNCATEGORIZED, "Uncategorized"))
        return options

    def select_category(self, category_id: str) -> bool:
        """Local view change only; unknown categories are ignored."""
        if not self._category_known(category_id):
            logger.debug(
                "Ignoring unknown category",
                operation="select_category",
                status="unknown",
                category=category_id,
            )
            return False
        self.selected_category = category_id
        return True

    def rows(self) -> list[DashboardRow]:
        """Filtered catalog entries annotated open/closed; empty while loading."""
        if self.catalog is None:
            return []
        rows = []
        for definition in self.catalog.filter(self.selected_category):
            shortcut_label = None
            if definition.shortcut:
                shortcut_label = format_shortcut(definition.shortcut, self.shortcut_modifiers)
            rows.append(DashboardRow(
                definition=definition,
                is_open=self.tracker.is_open(definition.id),
                category=self.catalog.category(definition.category),
                shortcut_label=shortcut_label,
            ))
        return rows

    def open_window_ids(self, closable_only: bool = False) -> list[str]:
        ids = list(self.tracker.open_windows)
        if closable_only:
            ids = [window_id for window_id in ids if window_id != DASHBOARD_ID]
        return ids

    def window_title(self, window_id: str) -> str:
        definition = self.tracker.open_windows.get(window_id)
        if definition is None and self.catalog is not None:
            definition = self.catalog.get(window_id)
        return definition.display_name if definition else window_id

    def can_create(self, window_id: str) -> bool:
        return self.catalog is not None and window_id in self.catalog

    def render_subtitle(self) -> str:
        """Text block shown under the dashboard title."""
        if self.state is DashboardState.LOADING:
            return "Loading window catalog..."
        if self.state is DashboardState.ERROR:
            return f"Window catalog unavailable:\n{self.catalog_error.message}"

        category_name = dict(self.category_options()).get(self.selected_category, self.selected_category)
        open_titles = [self.window_title(window_id) for window_id in self.open_window_ids()]
        lines = [
            f"Category: {category_name}",
            f"Open windows ({len(open_titles)}): {', '.join(open_titles)}",
            f"Shortcuts: {self.shortcut_status.text}",
        ]
        if self.tracker.failing_repeatedly:
            stale = "⚠️ Window state may be out of date"
            if self.tracker.last_refreshed_at is not None:
                stale += f" (last updated {self.tracker.last_refreshed_at:%H:%M:%S})"
            lines.append(stale)
        for notice in self.take_notices():
            lines.append(f"⚠️ {notice}")
        return "\n".join(lines)

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    async def open_window(self, window_id: str) -> Result[str]:
        if not self.can_create(window_id):
            message = f"'{window_id}' is not in the loaded catalog"
            self.notify(message)
            return Result.err(Error(
                error_type=ErrorType.CREATE_ERROR,
                message=message,
                context={"target": window_id, "rejected": True},
            ))
        result = await self.dispatcher.create(window_id)
        if result.is_err():
            self.notify(f"Could not open {self.window_title(window_id)}: {result.error.message}")
        return result

    async def close_window(self, window_id: str) -> Result[str]:
        result = await self.dispatcher.close(window_id)
        if result.is_err():
            self.notify(f"Could not close {self.window_title(window_id)}: {result.error.message}")
        return result

    async def test_shortcut(self, key: str) -> Result[str]:
        result = await self.dispatcher.test_shortcut(key)
        if result.is_err():
            self.notify(f"Shortcut test failed: {result.error.message}")
        return result

    async def check_shortcuts(self) -> Result[ShortcutStatus]:
        """Re-query shortcut registration; a failed query reads as unknown."""
        return await self.bridge.status()


def _theme_of(definition: WindowDefinition) -> str | None:
    return definition.config.theme if definition.config else None
