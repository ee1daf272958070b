# =============================================================================
# iTerm2 Host Runtime
# =============================================================================
# Hub windows are ordinary iTerm2 windows tagged with a window-scoped user
# variable holding their catalog id. The tag is what get_open_windows
# reports, so the tracker only ever sees what iTerm2 itself says is open.

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Awaitable, Callable

import iterm2
from loguru import logger

from .catalog import WindowCatalog
from .config_loader import load_hub_config
from .errors import Result
from .models import DASHBOARD_ID, WindowDefinition, WindowLaunch
from .runtime import RuntimeCallError, WindowRuntime
from .screens import WORKSPACE_SCREEN, ScreenPlan, TabPlan, build_screen_plan
from .shortcuts import format_shortcut
from .themes import hex_to_rgb

WINDOW_ID_VARIABLE = "user.hub_window_id"

MODIFIERS = {
    "cmd": iterm2.Modifier.COMMAND,
    "command": iterm2.Modifier.COMMAND,
    "alt": iterm2.Modifier.OPTION,
    "option": iterm2.Modifier.OPTION,
    "opt": iterm2.Modifier.OPTION,
    "shift": iterm2.Modifier.SHIFT,
    "ctrl": iterm2.Modifier.CONTROL,
    "control": iterm2.Modifier.CONTROL,
}

# Terminal colours per background mode
MODE_COLORS = {
    "light": {"background": "#ffffff", "foreground": "#333333"},
    "dark": {"background": "#1e1e1e", "foreground": "#e6e6e6"},
}

# Failures iTerm2 reports for window and tab creation
CREATE_ERRORS = (iterm2.RPCException, iterm2.CreateWindowException, iterm2.CreateTabException)

ShortcutHandler = Callable[[str], Awaitable["Result[str] | None"]]


def visible_screen_frame() -> tuple[int, int, int, int] | None:
    """
    Visible area of the main screen (excludes menu bar and dock).

    Returns:
        (origin_x, origin_y, width, height) in Cocoa coordinates, or None
        when AppKit is unavailable or there is no main screen
    """
    try:
        from AppKit import NSScreen
    except ImportError:
        logger.debug(
            "AppKit unavailable, skipping screen geometry",
            operation="visible_screen_frame",
            status="unavailable",
        )
        return None

    screen = NSScreen.mainScreen()
    if not screen:
        logger.warning(
            "No main screen found",
            operation="visible_screen_frame",
            status="failed",
        )
        return None
    frame = screen.visibleFrame()
    return (
        int(frame.origin.x),
        int(frame.origin.y),
        int(frame.size.width),
        int(frame.size.height),
    )


def compute_frame(definition: WindowDefinition,
                  screen: tuple[int, int, int, int] | None) -> tuple[int, int, int, int]:
    """
    Convert a top-left catalog position into a Cocoa (bottom-left) frame.

    The window is shrunk to fit and kept on screen. Without screen
    information the catalog values are used unchanged.
    """
    if screen is None:
        return definition.x, definition.y, definition.width, definition.height

    origin_x, origin_y, screen_w, screen_h = screen
    width = min(definition.width, screen_w)
    height = min(definition.height, screen_h)
    left = max(0, min(definition.x, screen_w - width))
    top = max(0, min(definition.y, screen_h - height))
    return origin_x + left, origin_y + screen_h - top - height, width, height


def _color(value: str) -> iterm2.Color:
    r, g, b = hex_to_rgb(value)
    return iterm2.Color(r, g, b)


def profile_customizations(plan: ScreenPlan) -> iterm2.LocalWriteOnlyProfile:
    """Per-window colours derived from the screen plan's palette."""
    profile = iterm2.LocalWriteOnlyProfile()
    if plan.tab_color:
        profile.set_tab_color(_color(plan.tab_color))
        profile.set_use_tab_color(True)
    if plan.palette:
        mode = MODE_COLORS.get(plan.mode, MODE_COLORS["light"])
        profile.set_background_color(_color(mode["background"]))
        profile.set_foreground_color(_color(mode["foreground"]))
        profile.set_cursor_color(_color(plan.palette.accent))
        profile.set_selection_color(_color(plan.palette.secondary))
    return profile


def banner_bytes(text: str) -> bytes:
    """Banner text as terminal output (CRLF line endings, trailing newline)."""
    lines = text.splitlines() or [""]
    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")


def match_keystroke(keystroke, keys: set[str], required: list) -> str | None:
    """Shortcut key a keystroke fires, or None."""
    if not all(m in keystroke.modifiers for m in required):
        return None
    key = (keystroke.characters_ignoring_modifiers or "").lower()
    return key if key in keys else None


class ITerm2Runtime(WindowRuntime):
    """WindowRuntime backed by the iTerm2 Python API."""

    def __init__(self, connection, config: dict, config_file: Path | None = None):
        self.connection = connection
        self.config = config
        self.config_file = config_file
        self.shortcut_handler: ShortcutHandler | None = None
        self.registered_shortcuts: dict[str, bool] = {}
        self._shortcut_tasks: set[asyncio.Task] = set()

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    async def get_available_windows(self) -> dict:
        result = load_hub_config(self.config_file)
        if result.is_err():
            raise RuntimeCallError("get_available_windows", result.error.message)
        self.config = result.value
        return {
            "windows": self.config.get("windows", []),
            "categories": self.config.get("categories", []),
        }

    def _definition(self, window_id: str) -> WindowDefinition:
        for raw in self.config.get("windows", []):
            if raw.get("id") == window_id:
                try:
                    return WindowDefinition.from_dict(raw)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(
                        "Invalid window definition, using fallback",
                        operation="runtime_definition",
                        status="fallback",
                        window_id=window_id,
                        error=str(e),
                    )
                    break
        return WindowDefinition.fallback(window_id)

    def _category_color(self, category_id: str) -> str | None:
        for raw in self.config.get("categories", []):
            if raw.get("id") == category_id:
                return raw.get("color")
        return None

    # -------------------------------------------------------------------------
    # Windows
    # -------------------------------------------------------------------------

    async def _tagged_windows(self, call: str) -> dict[str, object]:
        try:
            app = await iterm2.async_get_app(self.connection)
        except (iterm2.RPCException, ConnectionError, OSError) as e:
            raise RuntimeCallError(call, f"iTerm2 unavailable: {e}") from e
        if app is None:
            raise RuntimeCallError(call, "iTerm2 app unavailable")

        tagged: dict[str, object] = {}
        for window in app.terminal_windows:
            try:
                label = await window.async_get_variable(WINDOW_ID_VARIABLE)
            except (iterm2.RPCException, AttributeError, TypeError):
                logger.debug(
                    "Could not query window tag",
                    operation=call,
                    window=getattr(window, "window_id", "unknown"),
                )
                continue
            if label and label not in tagged:
                tagged[label] = window
        return tagged

    async def adopt_dashboard_window(self, window) -> None:
        """Tag the window the hub was started in as the dashboard."""
        await window.async_set_variable(WINDOW_ID_VARIABLE, DASHBOARD_ID)
        await window.async_set_title("Workspace Hub")
        logger.debug(
            "Dashboard window tagged",
            operation="adopt_dashboard_window",
            status="success",
            window=window.window_id,
        )

    async def get_open_windows(self) -> list[str]:
        tagged = await self._tagged_windows("get_open_windows")
        window_ids = list(tagged)
        logger.debug(
            "Open windows reported",
            operation="get_open_windows",
            open_windows=window_ids,
        )
        return window_ids

    async def create_window(self, window_id: str) -> str:
        tagged = await self._tagged_windows("create_window")
        existing = tagged.get(window_id)
        if existing is not None:
            try:
                await existing.async_activate()
            except iterm2.RPCException as e:
                raise RuntimeCallError("create_window", f"Failed to focus '{window_id}': {e}",
                                       window_id) from e
            logger.info(
                "Existing window focused",
                operation="create_window",
                status="focused",
                window_id=window_id,
            )
            return f"Window '{window_id}' focused"

        definition = self._definition(window_id)
        plan = build_screen_plan(
            definition,
            WindowLaunch.for_definition(definition),
            self.config,
            tab_color=self._category_color(definition.category),
        )
        customizations = profile_customizations(plan)

        try:
            window = await iterm2.Window.async_create(
                self.connection, profile_customizations=customizations
            )
        except CREATE_ERRORS as e:
            raise RuntimeCallError("create_window", f"Failed to create '{window_id}': {e}",
                                   window_id) from e
        if window is None:
            raise RuntimeCallError("create_window", f"iTerm2 refused to create '{window_id}'",
                                   window_id)

        try:
            await window.async_set_variable(WINDOW_ID_VARIABLE, window_id)
            await window.async_set_title(plan.title)
            await self._place(window, definition)
            await self._populate(window, plan, customizations)
            await window.async_activate()
        except CREATE_ERRORS as e:
            # An untagged window is invisible to get_open_windows; don't leave it behind
            await self._discard(window, window_id)
            raise RuntimeCallError("create_window", f"Failed to set up '{window_id}': {e}",
                                   window_id) from e

        logger.info(
            "Window created",
            operation="create_window",
            status="created",
            window_id=window_id,
            screen=plan.screen,
            metrics={"tabs": len(plan.tabs)},
        )
        return f"Window '{window_id}' created"

    async def _place(self, window, definition: WindowDefinition) -> None:
        x, y, width, height = compute_frame(definition, visible_screen_frame())
        frame = iterm2.Frame(origin=iterm2.Point(x, y), size=iterm2.Size(width, height))
        try:
            await window.async_set_frame(frame)
        except (iterm2.RPCException, iterm2.SetPropertyException, AttributeError, TypeError) as e:
            logger.warning(
                "Could not position window",
                operation="place_window",
                status="failed",
                window_id=definition.id,
                error=str(e),
            )

    async def _discard(self, window, window_id: str) -> None:
        try:
            await window.async_close(force=True)
        except iterm2.RPCException as e:
            logger.error(
                "Could not close half-built window",
                operation="create_window",
                status="orphaned",
                window_id=window_id,
                error=str(e),
            )

    @staticmethod
    async def _title_tab(tab, tab_plan: TabPlan) -> None:
        await tab.async_set_title(tab_plan.title)
        await tab.current_session.async_set_name(tab_plan.title)

    @staticmethod
    async def _start_tab(tab, tab_plan: TabPlan) -> None:
        session = tab.current_session
        if tab_plan.banner:
            await session.async_inject(banner_bytes(tab_plan.banner))
        if tab_plan.command:
            await session.async_send_text(f"{tab_plan.command}\n")

    async def _populate(self, window, plan: ScreenPlan, customizations) -> None:
        """One iTerm2 tab per planned tab: title, banner, optional command."""
        active = None
        for index, tab_plan in enumerate(plan.tabs):
            if index == 0:
                tab = window.current_tab
            else:
                tab = await window.async_create_tab(profile_customizations=customizations)
            await self._title_tab(tab, tab_plan)
            await self._start_tab(tab, tab_plan)
            if tab_plan.id == plan.active_tab:
                active = tab

        if active is not None and len(plan.tabs) > 1:
            await active.async_activate()

    async def retheme_window(self, window_id: str, launch: WindowLaunch) -> str:
        """
        Re-resolve an open workspace window's theme and apply it in place.

        Existing tabs are retitled and recoloured without touching what runs
        in them; tabs the new theme adds are created and started. Extra tabs
        from the old theme are left open.
        """
        tagged = await self._tagged_windows("retheme_window")
        window = tagged.get(window_id)
        if window is None:
            raise RuntimeCallError("retheme_window", f"Window '{window_id}' not found", window_id)

        definition = self._definition(window_id)
        plan = build_screen_plan(
            definition, launch, self.config,
            tab_color=self._category_color(definition.category),
        )
        if plan.screen != WORKSPACE_SCREEN:
            return f"Window '{window_id}' has no theme"

        customizations = profile_customizations(plan)
        existing = list(window.tabs)
        active = None
        try:
            for index, tab_plan in enumerate(plan.tabs):
                if index < len(existing):
                    tab = existing[index]
                    await tab.current_session.async_set_profile_properties(customizations)
                    await self._title_tab(tab, tab_plan)
                else:
                    tab = await window.async_create_tab(profile_customizations=customizations)
                    await self._title_tab(tab, tab_plan)
                    await self._start_tab(tab, tab_plan)
                if tab_plan.id == plan.active_tab:
                    active = tab
            if active is not None:
                await active.async_activate()
        except CREATE_ERRORS as e:
            raise RuntimeCallError("retheme_window", f"Failed to re-theme '{window_id}': {e}",
                                   window_id) from e

        logger.info(
            "Window re-themed",
            operation="retheme_window",
            status="success",
            window_id=window_id,
            theme=launch.theme,
            metrics={"tabs": len(plan.tabs), "extra_tabs_left": max(0, len(existing) - len(plan.tabs))},
        )
        return f"Window '{window_id}' re-themed"

    async def close_window(self, window_id: str) -> str:
        tagged = await self._tagged_windows("close_window")
        window = tagged.get(window_id)
        if window is None:
            raise RuntimeCallError("close_window", f"Window '{window_id}' not found", window_id)
        try:
            await window.async_close(force=True)
        except iterm2.RPCException as e:
            raise RuntimeCallError("close_window", f"Failed to close window '{window_id}': {e}",
                                   window_id) from e
        logger.info(
            "Window closed",
            operation="close_window",
            status="closed",
            window_id=window_id,
        )
        return f"Window '{window_id}' closed"

    # -------------------------------------------------------------------------
    # Shortcuts
    # -------------------------------------------------------------------------

    def _required_modifiers(self) -> list:
        names = self.config.get("hub", {}).get("shortcut_modifiers", [])
        required = []
        for name in names:
            modifier = MODIFIERS.get(str(name).lower())
            if modifier is None:
                logger.warning(
                    "Unknown shortcut modifier ignored",
                    operation="shortcut_modifiers",
                    modifier=name,
                )
                continue
            required.append(modifier)
        return required

    async def _fire(self, key: str) -> "Result[str] | None":
        if self.shortcut_handler is None:
            logger.warning(
                "Shortcut fired with no handler installed",
                operation="shortcut_fired",
                status="no_handler",
                key=key,
            )
            return None
        return await self.shortcut_handler(key)

    async def run_shortcut_monitor(self, catalog: WindowCatalog) -> None:
        """
        Capture the catalog's shortcut keys until cancelled.

        Registration is tracked per window title so the status string keeps
        the "Title: true" format.
        """
        entries = catalog.shortcut_entries()
        if not entries:
            logger.info(
                "No shortcuts in catalog",
                operation="run_shortcut_monitor",
                status="skipped",
            )
            self.registered_shortcuts = {}
            return

        modifier_names = self.config.get("hub", {}).get("shortcut_modifiers", [])
        required = self._required_modifiers()
        keys = {entry.shortcut for entry in entries}

        pattern = iterm2.KeystrokePattern()
        pattern.required_modifiers = required
        pattern.characters_ignoring_modifiers = sorted(keys)

        self.registered_shortcuts = {entry.title: False for entry in entries}
        try:
            async with iterm2.KeystrokeFilter(self.connection, [pattern]):
                async with iterm2.KeystrokeMonitor(self.connection) as monitor:
                    self.registered_shortcuts = {entry.title: True for entry in entries}
                    logger.info(
                        "Global shortcuts registered",
                        operation="run_shortcut_monitor",
                        status="registered",
                        shortcuts={
                            entry.title: format_shortcut(entry.shortcut, modifier_names)
                            for entry in entries
                        },
                    )
                    while True:
                        keystroke = await monitor.async_get()
                        key = match_keystroke(keystroke, keys, required)
                        if key is None:
                            continue
                        logger.info(
                            "Shortcut handler triggered",
                            operation="run_shortcut_monitor",
                            status="fired",
                            key=key,
                        )
                        task = asyncio.get_running_loop().create_task(self._fire(key))
                        self._shortcut_tasks.add(task)
                        task.add_done_callback(self._shortcut_tasks.discard)
        except iterm2.RPCException as e:
            logger.error(
                "Failed to register global shortcuts",
                operation="run_shortcut_monitor",
                status="failed",
                error=str(e),
            )
        finally:
            self.registered_shortcuts = {title: False for title in self.registered_shortcuts}

    async def test_shortcut(self, key: str) -> str:
        result = await self._fire(key)
        if result is None:
            raise RuntimeCallError("test_shortcut", f"No window bound to shortcut '{key}'")
        if result.is_err():
            raise RuntimeCallError("test_shortcut", result.error.message)
        return f"Shortcut '{key}' fired: {result.value}"

    async def check_shortcuts_registered(self) -> str:
        if not self.registered_shortcuts:
            return "Shortcuts not registered"
        return ", ".join(
            f"{title}: {str(registered).lower()}"
            for title, registered in self.registered_shortcuts.items()
        )

    # -------------------------------------------------------------------------
    # Layout changes
    # -------------------------------------------------------------------------

    async def watch_layout(self, on_change: Callable[[], Awaitable[object]]) -> None:
        """Call ``on_change`` whenever iTerm2 reports a window layout change."""
        try:
            async with iterm2.LayoutChangeMonitor(self.connection) as monitor:
                while True:
                    await monitor.async_get()
                    logger.debug(
                        "Layout changed",
                        operation="watch_layout",
                        status="changed",
                    )
                    await on_change()
        except iterm2.RPCException as e:
            logger.warning(
                "Layout monitor stopped",
                operation="watch_layout",
                status="failed",
                error=str(e),
            )
