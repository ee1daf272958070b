# =============================================================================
# Dashboard Alerts (iTerm2)
# =============================================================================

from __future__ import annotations

from pathlib import Path

import iterm2
from loguru import logger

from .dashboard import Dashboard, DashboardState
from .errors import ErrorReport
from .preferences import PREFERENCES_PATH, save_preferences
from .shortcuts import format_shortcut

TITLE = "Workspace Hub"

CONTROL_BUTTONS = (
    "category",
    "close",
    "test_shortcut",
    "check_shortcuts",
    "refresh",
    "reload",
    "quit",
)

CONTROL_LABELS = {
    "category": "Category...",
    "close": "Close Window...",
    "test_shortcut": "Test Shortcut...",
    "check_shortcuts": "Check Shortcuts",
    "refresh": "Refresh",
    "reload": "Reload Catalog",
    "quit": "Quit",
}


async def _run_alert(connection, title: str, subtitle: str, buttons: list[str],
                     window_id: str | None, operation: str) -> int | None:
    """Show an alert and return the clicked button index (None on error)."""
    alert = iterm2.Alert(title, subtitle, window_id=window_id)
    for label in buttons:
        alert.add_button(label)

    try:
        result = await alert.async_run(connection)
    except (iterm2.RPCException, ValueError, TypeError) as e:
        logger.error(
            "Dialog error occurred",
            operation=operation,
            status="failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        return None

    # Result is 1000 + button_index
    button_index = result - 1000
    logger.debug(
        "Dialog result received",
        operation=operation,
        button_index=button_index,
    )
    return button_index


async def choose(connection, title: str, subtitle: str, options: list[tuple[str, str]],
                 window_id: str | None = None) -> str | None:
    """Pick one of ``options`` (value, label); None when Back is clicked."""
    labels = [label for _, label in options] + ["Back"]
    index = await _run_alert(connection, title, subtitle, labels, window_id, "dashboard_choose")
    if index is None or index >= len(options) or index < 0:
        return None
    return options[index][0]


async def show_loading(connection, dashboard: Dashboard, window_id: str | None) -> str:
    """Catalog not resolved: offer Retry or Quit, nothing else."""
    subtitle = dashboard.render_subtitle()
    buttons = ["Retry", "Quit"] if dashboard.state is DashboardState.ERROR else ["Refresh", "Quit"]
    index = await _run_alert(connection, TITLE, subtitle, buttons, window_id, "dashboard_loading")
    return "retry" if index == 0 else "quit"


async def show_dashboard(connection, dashboard: Dashboard,
                         window_id: str | None) -> tuple[str, str | None]:
    """
    Show the dashboard once.

    Returns:
        (action, argument): ("open", window_id) for an entry button, or a
        control action name with None
    """
    rows = dashboard.rows()
    buttons = [row.label for row in rows] + [CONTROL_LABELS[c] for c in CONTROL_BUTTONS]
    index = await _run_alert(
        connection, TITLE, dashboard.render_subtitle(), buttons, window_id, "show_dashboard"
    )
    if index is None:
        return "quit", None
    if index < len(rows):
        return "open", rows[index].definition.id
    control = index - len(rows)
    if control < len(CONTROL_BUTTONS):
        return CONTROL_BUTTONS[control], None
    return "quit", None


async def run_dashboard(connection, dashboard: Dashboard, prefs: dict, report: ErrorReport,
                        window_id: str | None = None,
                        preferences_path: Path = PREFERENCES_PATH) -> None:
    """Dashboard loop; returns when the user quits."""
    while True:
        if dashboard.state is not DashboardState.READY:
            if await show_loading(connection, dashboard, window_id) == "quit":
                return
            report.collect_result(await dashboard.load_catalog(), "load_catalog")
            if dashboard.catalog is not None:
                await dashboard.refresh()
            continue

        action, argument = await show_dashboard(connection, dashboard, window_id)
        logger.info(
            "Dashboard action",
            operation="run_dashboard",
            status="action",
            action=action,
            argument=argument,
        )

        if action == "quit":
            return

        if action == "open":
            report.collect_result(await dashboard.open_window(argument), "open_window")

        elif action == "close":
            options = [(wid, dashboard.window_title(wid))
                       for wid in dashboard.open_window_ids(closable_only=True)]
            if not options:
                dashboard.notify("No hub windows are open")
                continue
            chosen = await choose(connection, "Close Window", "Choose a window to close:",
                                  options, window_id)
            if chosen:
                report.collect_result(await dashboard.close_window(chosen), "close_window")

        elif action == "category":
            chosen = await choose(connection, "Category", "Show windows in:",
                                  dashboard.category_options(), window_id)
            if chosen and dashboard.select_category(chosen):
                prefs["last_category"] = chosen
                save_preferences(prefs, preferences_path)

        elif action == "test_shortcut":
            options = [
                (entry.shortcut,
                 f"{entry.display_name} ({format_shortcut(entry.shortcut, dashboard.shortcut_modifiers)})")
                for entry in dashboard.catalog.shortcut_entries()
            ]
            chosen = await choose(connection, "Test Shortcut",
                                  "Fire a shortcut as if it had been pressed:", options, window_id)
            if chosen:
                report.collect_result(await dashboard.test_shortcut(chosen), "test_shortcut")

        elif action == "check_shortcuts":
            status_result = await dashboard.check_shortcuts()
            if status_result.is_err():
                report.add_warning(status_result.error)

        elif action == "refresh":
            await dashboard.refresh()

        elif action == "reload":
            await dashboard.load_catalog()
            await dashboard.refresh()

        # Let the scheduled settle-then-refresh land before re-rendering
        await dashboard.dispatcher.wait_for_refreshes()
