# =============================================================================
# Screen Resolution and Launch Plans
# =============================================================================
# Which screen a window shows is decided once, at creation, from its id and
# catalog entry. The screens themselves (editor, task list, calculator,
# timer) are external programs; this module only prepares what they start
# with.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from .config_loader import validate_command
from .models import DASHBOARD_ID, WindowDefinition, WindowLaunch
from .themes import Palette, journal_placeholder, resolve, tasks_placeholder

WORKSPACE_SCREEN = "workspace"
KNOWN_SCREENS = (DASHBOARD_ID, "daily-note", "current-task", WORKSPACE_SCREEN)
WORKSPACE_PREFIXES = ("flexible-workspace-", "flex-")


@dataclass(frozen=True)
class TabPlan:
    id: str
    title: str
    banner: str
    command: str = ""


@dataclass(frozen=True)
class ScreenPlan:
    window_id: str
    screen: str
    title: str
    tabs: tuple[TabPlan, ...]
    active_tab: str
    palette: Palette | None = None
    mode: str = "light"
    tab_color: str | None = None


def _screen_for(candidate: str | None) -> str | None:
    if not candidate:
        return None
    if candidate in KNOWN_SCREENS:
        return candidate
    if candidate == "flex" or candidate.startswith(WORKSPACE_PREFIXES):
        return WORKSPACE_SCREEN
    return None


def resolve_screen(window_id: str, definition: WindowDefinition | None = None) -> str:
    """
    Screen a window shows: the catalog's ``screen`` if it names one, else the
    window id (exact, then the ``flexible-workspace-*`` family), else the
    dashboard.
    """
    for candidate in (definition.screen if definition else None, window_id):
        screen = _screen_for(candidate)
        if screen:
            return screen
    return DASHBOARD_ID


def _banner(screen: str, definition: WindowDefinition, today: date) -> str:
    if screen == "daily-note":
        return journal_placeholder(today)
    if screen == "current-task":
        return tasks_placeholder(today)
    if screen == DASHBOARD_ID:
        return "Workspace Hub dashboard"
    return definition.description


def build_screen_plan(definition: WindowDefinition, launch: WindowLaunch, config: dict,
                      tab_color: str | None = None, today: date | None = None) -> ScreenPlan:
    """Everything the runtime needs to populate a freshly created window."""
    today = today or date.today()
    screen = resolve_screen(launch.window_id, definition)
    screen_commands = config.get("screens", {})
    tab_commands = config.get("tab_commands", {})

    if screen == WORKSPACE_SCREEN:
        profile = resolve(launch.theme)
        tabs = tuple(
            TabPlan(
                id=tab.id,
                title=tab.title,
                banner=tab.placeholder(today),
                command=validate_command(tab_commands.get(tab.id, "")),
            )
            for tab in profile.tabs
        )
        return ScreenPlan(
            window_id=launch.window_id,
            screen=screen,
            title=definition.display_name,
            tabs=tabs,
            active_tab=profile.initial_tab(launch.default_tab),
            palette=profile.palette,
            mode=profile.mode,
            tab_color=profile.palette.primary,
        )

    title = definition.display_name
    if screen == "daily-note":
        title = f"{title} · {today:%A}, {today:%B} {today.day}, {today.year}"
    tab = TabPlan(
        id=screen,
        title=definition.display_name,
        banner=_banner(screen, definition, today),
        command=validate_command(screen_commands.get(screen, "")),
    )
    return ScreenPlan(
        window_id=launch.window_id,
        screen=screen,
        title=title,
        tabs=(tab,),
        active_tab=tab.id,
        tab_color=tab_color,
    )
