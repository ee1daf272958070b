"""Shared pytest configuration: an in-memory window runtime."""

from __future__ import annotations

import copy

import pytest

from workspace_hub.catalog import WindowCatalog
from workspace_hub.dispatcher import LifecycleDispatcher
from workspace_hub.models import DASHBOARD_ID
from workspace_hub.runtime import RuntimeCallError, WindowRuntime
from workspace_hub.shortcuts import ShortcutBridge
from workspace_hub.tracker import OpenWindowTracker

# Settle delay used by tests (seconds)
FAST_SETTLE = 0.01

SAMPLE_PAYLOAD = {
    "categories": [
        {"id": "journal", "name": "Journal", "color": "#28a745"},
        {"id": "tasks", "name": "Tasks", "color": "#dc3545"},
    ],
    "windows": [
        {"id": "w1", "title": "Notes", "icon": "📝", "category": "journal", "shortcut": "d"},
        {"id": "w2", "title": "Todo", "icon": "✅", "category": "tasks", "shortcut": "t"},
        {"id": "w3", "title": "Scratch", "category": "journal"},
    ],
}


class FakeRuntime(WindowRuntime):
    """
    Runtime double that keeps open windows in a set.

    ``fail`` names calls that raise ``RuntimeCallError``; ``calls`` records
    every call in order as ``(name, argument)``.
    """

    def __init__(self, payload: dict | None = None, open_windows=None):
        self.payload = copy.deepcopy(SAMPLE_PAYLOAD if payload is None else payload)
        self.open = set(open_windows or {DASHBOARD_ID})
        self.fail: set[str] = set()
        self.calls: list[tuple[str, str | None]] = []
        self.shortcut_report = "Notes: true, Todo: true"
        self.rethemes: list = []

    def _check(self, call: str, argument: str | None = None) -> None:
        self.calls.append((call, argument))
        if call in self.fail:
            raise RuntimeCallError(call, f"{call} unavailable", argument)

    def call_count(self, call: str) -> int:
        return sum(1 for name, _ in self.calls if name == call)

    async def get_available_windows(self) -> dict:
        self._check("get_available_windows")
        return copy.deepcopy(self.payload)

    async def get_open_windows(self) -> list[str]:
        self._check("get_open_windows")
        return sorted(self.open)

    async def create_window(self, window_id: str) -> str:
        self._check("create_window", window_id)
        if window_id in self.open:
            return f"Window '{window_id}' focused"
        self.open.add(window_id)
        return f"Window '{window_id}' created"

    async def close_window(self, window_id: str) -> str:
        self._check("close_window", window_id)
        if window_id not in self.open:
            raise RuntimeCallError("close_window", f"Window '{window_id}' not found", window_id)
        self.open.discard(window_id)
        return f"Window '{window_id}' closed"

    async def test_shortcut(self, key: str) -> str:
        self._check("test_shortcut", key)
        for raw in self.payload.get("windows", []):
            if raw.get("shortcut") == key:
                self.open.add(raw["id"])
                return f"Shortcut '{key}' fired"
        raise RuntimeCallError("test_shortcut", f"No window bound to shortcut '{key}'")

    async def check_shortcuts_registered(self) -> str:
        self._check("check_shortcuts_registered")
        return self.shortcut_report

    async def retheme_window(self, window_id: str, launch) -> str:
        self._check("retheme_window", window_id)
        self.rethemes.append(launch)
        return f"Window '{window_id}' re-themed"


@pytest.fixture(autouse=True)
def _isolate_config(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """Keep tests away from the user's real hub.toml."""
    monkeypatch.setenv("WORKSPACE_HUB_CONFIG", str(tmp_path / "hub.toml"))
    yield


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def catalog() -> WindowCatalog:
    return WindowCatalog.from_payload(SAMPLE_PAYLOAD).value


@pytest.fixture
def tracker(runtime, catalog) -> OpenWindowTracker:
    return OpenWindowTracker(runtime, catalog)


@pytest.fixture
def dispatcher(runtime, tracker) -> LifecycleDispatcher:
    return LifecycleDispatcher(runtime, tracker, settle_delay=FAST_SETTLE)


@pytest.fixture
def bridge(runtime, dispatcher, catalog) -> ShortcutBridge:
    return ShortcutBridge(runtime, dispatcher, catalog)
