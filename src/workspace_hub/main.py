# =============================================================================
# Entry Point
# =============================================================================

from __future__ import annotations

import asyncio
import copy
from functools import partial
from uuid import uuid4

import iterm2
from loguru import logger

from .catalog import WindowCatalog
from .config_loader import DEFAULT_CONFIG, config_path, load_hub_config, settle_delay_seconds
from .dashboard import Dashboard
from .dashboard_ui import run_dashboard
from .dispatcher import LifecycleDispatcher
from .errors import ErrorReport
from .iterm2_runtime import ITerm2Runtime
from .logging_config import log_done_task, setup_logger, trace_id_var
from .preferences import load_preferences
from .shortcuts import ShortcutBridge
from .tracker import OpenWindowTracker


async def main(connection):
    """
    Run the hub for one iTerm2 connection.

    Flow:
    1. Load configuration and preferences
    2. Wire runtime, tracker, dispatcher and shortcut bridge
    3. Load the catalog, take the first snapshot, query shortcuts
    4. Start the shortcut and layout monitors
    5. Run the dashboard until the user quits
    """
    main_trace_id = str(uuid4())
    trace_id_var.set(main_trace_id)
    report = ErrorReport()

    logger.info(
        "Workspace Hub starting",
        operation="main",
        status="started",
        trace_id=main_trace_id,
    )

    config_file = config_path()
    config_result = load_hub_config(config_file)
    if report.collect_result(config_result, "load_hub_config"):
        config = config_result.value
    else:
        # The catalog load reports the same error and offers a retry
        config = copy.deepcopy(DEFAULT_CONFIG)

    hub_settings = config.get("hub", {})
    prefs = load_preferences()

    runtime = ITerm2Runtime(connection, config, config_file)
    tracker = OpenWindowTracker(
        runtime,
        failure_threshold=int(hub_settings.get("refresh_failure_threshold", 3)),
    )
    dispatcher = LifecycleDispatcher(runtime, tracker, settle_delay_seconds(config))
    bridge = ShortcutBridge(runtime, dispatcher)
    runtime.shortcut_handler = bridge.dispatch

    background: dict[str, asyncio.Task] = {}

    def restart_shortcut_monitor(catalog: WindowCatalog) -> None:
        previous = background.pop("shortcuts", None)
        if previous is not None:
            previous.cancel()
        task = asyncio.get_running_loop().create_task(runtime.run_shortcut_monitor(catalog))
        task.add_done_callback(partial(log_done_task, operation="run_shortcut_monitor"))
        background["shortcuts"] = task

    dashboard = Dashboard(
        runtime,
        tracker,
        dispatcher,
        bridge,
        shortcut_modifiers=list(hub_settings.get("shortcut_modifiers", [])),
        initial_category=prefs.get("last_category"),
        on_catalog_loaded=restart_shortcut_monitor,
    )

    # Tag the window we were started in as the dashboard's own
    app = await iterm2.async_get_app(connection)
    window = app.current_terminal_window
    if window is None:
        logger.info(
            "No current window - creating a new one",
            operation="main",
            trace_id=main_trace_id,
        )
        window = await iterm2.Window.async_create(connection)
    await runtime.adopt_dashboard_window(window)

    await dashboard.start(check_shortcuts=False)
    if hub_settings.get("refresh_on_layout_change", True):
        layout_task = asyncio.get_running_loop().create_task(runtime.watch_layout(tracker.refresh))
        layout_task.add_done_callback(partial(log_done_task, operation="watch_layout"))
        background["layout"] = layout_task

    # Give the shortcut monitor a moment to register before asking for status
    await asyncio.sleep(settle_delay_seconds(config))
    if prefs.get("check_shortcuts_on_start", True):
        status_result = await dashboard.check_shortcuts()
        if status_result.is_err():
            report.add_warning(status_result.error)

    try:
        await run_dashboard(connection, dashboard, prefs, report, window_id=window.window_id)
    finally:
        for task in background.values():
            task.cancel()
        await dispatcher.wait_for_refreshes()

    logger.info(
        "Workspace Hub stopped",
        operation="main",
        status="complete",
        trace_id=main_trace_id,
        metrics={
            "errors": len(report.errors),
            "warnings": len(report.warnings),
        },
    )
    report.log_summary(main_trace_id)


def run() -> None:
    """Console script entry point."""
    setup_logger()
    iterm2.run_until_complete(main)
