from datetime import date

import pytest

from workspace_hub import config_loader
from workspace_hub.config_loader import DEFAULT_CONFIG
from workspace_hub.models import WindowConfig, WindowDefinition, WindowLaunch
from workspace_hub.screens import build_screen_plan, resolve_screen

TODAY = date(2025, 3, 14)


@pytest.fixture(autouse=True)
def _all_commands_exist(monkeypatch):
    monkeypatch.setattr(config_loader.shutil, "which", lambda name: f"/usr/bin/{name}")


@pytest.mark.parametrize(
    "window_id, expected",
    [
        ("dashboard", "dashboard"),
        ("daily-note", "daily-note"),
        ("current-task", "current-task"),
        ("flex", "workspace"),
        ("flexible-workspace-focus", "workspace"),
        ("flex-1", "workspace"),
        ("mystery", "dashboard"),
    ],
)
def test_resolve_screen_by_id(window_id, expected):
    assert resolve_screen(window_id) == expected


def test_catalog_screen_takes_precedence():
    definition = WindowDefinition(id="morning", title="Morning", screen="daily-note")
    assert resolve_screen("morning", definition) == "daily-note"


def test_focus_workspace_plan():
    definition = WindowDefinition(
        id="flexible-workspace-focus", title="Focus", icon="🍅",
        config=WindowConfig(theme="focus", default_tab="timer"),
    )
    plan = build_screen_plan(definition, WindowLaunch.for_definition(definition), DEFAULT_CONFIG,
                             today=TODAY)

    assert plan.screen == "workspace"
    assert [tab.id for tab in plan.tabs] == ["timer", "tasks", "notes"]
    assert plan.active_tab == "timer"
    assert plan.mode == "dark"
    assert plan.tab_color == "#dc3545"
    assert plan.tabs[0].banner.startswith("50:00")


def test_unknown_theme_builds_default_workspace():
    definition = WindowDefinition(id="flex", title="Flex", config=WindowConfig(theme="neon"))
    plan = build_screen_plan(definition, WindowLaunch.for_definition(definition), DEFAULT_CONFIG,
                             today=TODAY)
    assert [tab.id for tab in plan.tabs] == ["notes", "calculator", "timer"]
    assert plan.active_tab == "notes"
    assert plan.tabs[1].command == "bc -l"


def test_theme_resolved_again_on_each_launch():
    definition = WindowDefinition(id="flex", title="Flex", config=WindowConfig(theme="default"))
    launch = WindowLaunch.for_definition(definition)
    first = build_screen_plan(definition, launch, DEFAULT_CONFIG, today=TODAY)
    second = build_screen_plan(definition, WindowLaunch(window_id="flex", theme="journal"), DEFAULT_CONFIG, today=TODAY)
    assert first.tabs[0].id == "notes"
    assert second.tabs[0].id == "journal"


def test_daily_note_plan_has_dated_title():
    definition = WindowDefinition(id="daily-note", title="Daily Note", icon="📝", screen="daily-note")
    plan = build_screen_plan(definition, WindowLaunch.for_definition(definition), DEFAULT_CONFIG,
                             tab_color="#28a745", today=TODAY)
    assert plan.title == "📝 Daily Note · Friday, March 14, 2025"
    assert len(plan.tabs) == 1
    assert plan.active_tab == "daily-note"
    assert plan.tab_color == "#28a745"
    assert plan.palette is None


def test_fallback_definition_gets_dashboard_screen():
    definition = WindowDefinition.fallback("mystery")
    plan = build_screen_plan(definition, WindowLaunch.for_definition(definition), DEFAULT_CONFIG,
                             today=TODAY)
    assert plan.screen == "dashboard"
    assert plan.title == "Window (mystery)"
    assert (definition.width, definition.height, definition.x, definition.y) == (500, 500, 250, 250)
