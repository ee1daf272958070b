"""iTerm2 runtime: pure helpers, shortcut plumbing and window lifecycle against fake iTerm2 objects."""

import asyncio
from types import SimpleNamespace

import pytest

iterm2 = pytest.importorskip("iterm2")

from workspace_hub.config_loader import DEFAULT_CONFIG  # noqa: E402
from workspace_hub.dispatcher import LifecycleDispatcher  # noqa: E402
from workspace_hub.errors import Error, ErrorType, Result  # noqa: E402
from workspace_hub.iterm2_runtime import (  # noqa: E402
    ITerm2Runtime,
    banner_bytes,
    compute_frame,
    match_keystroke,
)
from workspace_hub.models import WindowDefinition, WindowLaunch  # noqa: E402
from workspace_hub.runtime import RuntimeCallError  # noqa: E402
from workspace_hub.tracker import OpenWindowTracker  # noqa: E402

SCREEN = (0, 25, 1440, 875)


def test_compute_frame_without_screen_uses_catalog_values():
    definition = WindowDefinition(id="w", title="W", x=100, y=120, width=500, height=600)
    assert compute_frame(definition, None) == (100, 120, 500, 600)


def test_compute_frame_flips_to_bottom_left_origin():
    definition = WindowDefinition(id="w", title="W", x=100, y=100, width=500, height=600)
    assert compute_frame(definition, SCREEN) == (100, 25 + 875 - 100 - 600, 500, 600)


def test_compute_frame_keeps_window_on_screen():
    definition = WindowDefinition(id="w", title="W", x=5000, y=5000, width=3000, height=400)
    x, y, width, height = compute_frame(definition, SCREEN)
    assert (x, width) == (0, 1440)
    assert y == 25
    assert height == 400


def test_banner_bytes_uses_crlf():
    assert banner_bytes("a\nb") == b"a\r\nb\r\n\r\n"
    assert banner_bytes("") == b"\r\n\r\n"


def test_match_keystroke_requires_modifiers():
    required = [iterm2.Modifier.COMMAND, iterm2.Modifier.SHIFT]
    pressed = SimpleNamespace(
        modifiers=[iterm2.Modifier.COMMAND, iterm2.Modifier.SHIFT, iterm2.Modifier.OPTION],
        characters_ignoring_modifiers="D",
    )
    assert match_keystroke(pressed, {"d", "t"}, required) == "d"

    missing = SimpleNamespace(modifiers=[iterm2.Modifier.COMMAND], characters_ignoring_modifiers="d")
    assert match_keystroke(missing, {"d"}, required) is None

    unbound = SimpleNamespace(modifiers=required, characters_ignoring_modifiers="x")
    assert match_keystroke(unbound, {"d"}, required) is None


def test_shortcut_status_before_registration():
    runtime = ITerm2Runtime(None, DEFAULT_CONFIG)
    assert asyncio.run(runtime.check_shortcuts_registered()) == "Shortcuts not registered"


def test_shortcut_status_format():
    runtime = ITerm2Runtime(None, DEFAULT_CONFIG)
    runtime.registered_shortcuts = {"Daily Note": True, "Current Task": False}
    assert asyncio.run(runtime.check_shortcuts_registered()) == "Daily Note: true, Current Task: false"


def test_test_shortcut_routes_through_handler():
    runtime = ITerm2Runtime(None, DEFAULT_CONFIG)
    fired = []

    async def handler(key):
        fired.append(key)
        return Result.ok(f"Window for '{key}' created")

    runtime.shortcut_handler = handler
    ack = asyncio.run(runtime.test_shortcut("d"))
    assert fired == ["d"]
    assert ack == "Shortcut 'd' fired: Window for 'd' created"


def test_test_shortcut_unbound_key_raises():
    runtime = ITerm2Runtime(None, DEFAULT_CONFIG)

    async def handler(key):
        return None

    runtime.shortcut_handler = handler
    with pytest.raises(RuntimeCallError):
        asyncio.run(runtime.test_shortcut("z"))


def test_test_shortcut_failed_creation_raises():
    runtime = ITerm2Runtime(None, DEFAULT_CONFIG)

    async def handler(key):
        return Result.err(Error(ErrorType.CREATE_ERROR, "refused"))

    runtime.shortcut_handler = handler
    with pytest.raises(RuntimeCallError, match="refused"):
        asyncio.run(runtime.test_shortcut("d"))


def test_catalog_payload_from_config_file(tmp_path):
    path = tmp_path / "hub.toml"
    path.write_text('[[windows]]\nid = "solo"\ntitle = "Solo"\n')
    runtime = ITerm2Runtime(None, DEFAULT_CONFIG, path)
    payload = asyncio.run(runtime.get_available_windows())
    assert [w["id"] for w in payload["windows"]] == ["solo"]
    assert [c["id"] for c in payload["categories"]] == ["journal", "tasks", "workspace"]


def test_catalog_payload_parse_error_raises(tmp_path):
    path = tmp_path / "hub.toml"
    path.write_text("[[windows]\n")
    runtime = ITerm2Runtime(None, DEFAULT_CONFIG, path)
    with pytest.raises(RuntimeCallError):
        asyncio.run(runtime.get_available_windows())


def test_unknown_window_gets_fallback_definition():
    runtime = ITerm2Runtime(None, DEFAULT_CONFIG)
    definition = runtime._definition("mystery")
    assert definition.title == "Window (mystery)"
    assert runtime._definition("daily-note").shortcut == "d"


# -----------------------------------------------------------------------------
# Window lifecycle against fake iTerm2 objects
# -----------------------------------------------------------------------------


class FakeSession:
    def __init__(self):
        self.name = None
        self.injected: list[bytes] = []
        self.sent: list[str] = []
        self.profiles: list = []

    async def async_set_name(self, name):
        self.name = name

    async def async_inject(self, data):
        self.injected.append(data)

    async def async_send_text(self, text):
        self.sent.append(text)

    async def async_set_profile_properties(self, profile):
        self.profiles.append(profile)


class FakeTab:
    def __init__(self):
        self.title = None
        self.current_session = FakeSession()
        self.activated = 0

    async def async_set_title(self, title):
        self.title = title

    async def async_activate(self):
        self.activated += 1


class FakeWindow:
    def __init__(self, window_id, tag=None, tab_count=1, fail_tab_creation=False):
        self.window_id = window_id
        self.variables = {} if tag is None else {"user.hub_window_id": tag}
        self.tabs = [FakeTab() for _ in range(tab_count)]
        self.fail_tab_creation = fail_tab_creation
        self.title = None
        self.frame = None
        self.activated = 0
        self.closed = False

    @property
    def current_tab(self):
        return self.tabs[0]

    async def async_get_variable(self, name):
        return self.variables.get(name)

    async def async_set_variable(self, name, value):
        self.variables[name] = value

    async def async_set_title(self, title):
        self.title = title

    async def async_set_frame(self, frame):
        self.frame = frame

    async def async_activate(self):
        self.activated += 1

    async def async_create_tab(self, profile_customizations=None):
        if self.fail_tab_creation:
            raise iterm2.CreateTabException("INVALID_PROFILE_NAME")
        tab = FakeTab()
        self.tabs.append(tab)
        return tab

    async def async_close(self, force=False):
        self.closed = True


class FakeApp:
    """Stands in for iterm2.async_get_app; counts how often it is asked."""

    def __init__(self, windows):
        self.terminal_windows = list(windows)
        self.calls = 0

    async def get(self, connection, create_if_needed=True):
        self.calls += 1
        return self


@pytest.fixture
def fake_app(monkeypatch):
    app = FakeApp([])
    monkeypatch.setattr(iterm2, "async_get_app", app.get)
    monkeypatch.setattr("workspace_hub.iterm2_runtime.visible_screen_frame", lambda: None)
    return app


def _patch_window_create(monkeypatch, app, window=None, error=None):
    created = []

    async def async_create(connection, profile=None, command=None, profile_customizations=None):
        created.append(profile_customizations)
        if error is not None:
            raise error
        app.terminal_windows.append(window)
        return window

    monkeypatch.setattr(iterm2.Window, "async_create", staticmethod(async_create))
    return created


def test_open_windows_reports_only_tagged_windows(fake_app):
    fake_app.terminal_windows = [
        FakeWindow("pty-1", tag="dashboard"),
        FakeWindow("pty-2"),
        FakeWindow("pty-3", tag="daily-note"),
    ]
    runtime = ITerm2Runtime(None, DEFAULT_CONFIG)
    assert asyncio.run(runtime.get_open_windows()) == ["dashboard", "daily-note"]


def test_create_focuses_existing_window(fake_app, monkeypatch):
    existing = FakeWindow("pty-2", tag="daily-note")
    fake_app.terminal_windows = [FakeWindow("pty-1", tag="dashboard"), existing]
    created = _patch_window_create(monkeypatch, fake_app, FakeWindow("pty-9"))
    runtime = ITerm2Runtime(None, DEFAULT_CONFIG)

    ack = asyncio.run(runtime.create_window("daily-note"))

    assert ack == "Window 'daily-note' focused"
    assert existing.activated == 1
    assert created == []
    assert len(fake_app.terminal_windows) == 2


def test_create_new_window_is_tagged_and_titled(fake_app, monkeypatch):
    window = FakeWindow("pty-5")
    _patch_window_create(monkeypatch, fake_app, window)
    runtime = ITerm2Runtime(None, DEFAULT_CONFIG)

    ack = asyncio.run(runtime.create_window("daily-note"))

    assert ack == "Window 'daily-note' created"
    assert window.variables["user.hub_window_id"] == "daily-note"
    assert window.title.startswith("📝 Daily Note")
    assert window.tabs[0].current_session.injected
    assert window.activated == 1
    assert asyncio.run(runtime.get_open_windows()) == ["daily-note"]


def test_rejected_window_creation_is_create_error_with_one_refresh(fake_app, monkeypatch):
    _patch_window_create(monkeypatch, fake_app,
                         error=iterm2.CreateWindowException("INVALID_PROFILE_NAME"))
    runtime = ITerm2Runtime(None, DEFAULT_CONFIG)
    dispatcher = LifecycleDispatcher(runtime, OpenWindowTracker(runtime), settle_delay=0.01)

    async def scenario():
        result = await dispatcher.create("daily-note")
        await dispatcher.wait_for_refreshes()
        return result

    result = asyncio.run(scenario())

    assert result.is_err()
    assert result.error.error_type is ErrorType.CREATE_ERROR
    assert "INVALID_PROFILE_NAME" in result.error.message
    # One lookup for the create, one for the scheduled refresh
    assert fake_app.calls == 2


def test_failed_tab_creation_closes_half_built_window(fake_app, monkeypatch):
    window = FakeWindow("pty-7", fail_tab_creation=True)
    _patch_window_create(monkeypatch, fake_app, window)
    runtime = ITerm2Runtime(None, DEFAULT_CONFIG)

    with pytest.raises(RuntimeCallError, match="Failed to set up 'flex'") as excinfo:
        asyncio.run(runtime.create_window("flex"))

    assert excinfo.value.call == "create_window"
    assert window.closed


def test_close_unknown_window_raises(fake_app):
    fake_app.terminal_windows = [FakeWindow("pty-1", tag="dashboard")]
    runtime = ITerm2Runtime(None, DEFAULT_CONFIG)
    with pytest.raises(RuntimeCallError, match="not found"):
        asyncio.run(runtime.close_window("daily-note"))


def test_close_known_window(fake_app):
    window = FakeWindow("pty-2", tag="daily-note")
    fake_app.terminal_windows = [window]
    runtime = ITerm2Runtime(None, DEFAULT_CONFIG)
    assert asyncio.run(runtime.close_window("daily-note")) == "Window 'daily-note' closed"
    assert window.closed


def test_retheme_retitles_tabs_and_adds_missing_ones(fake_app):
    window = FakeWindow("pty-3", tag="flex", tab_count=1)
    fake_app.terminal_windows = [window]
    runtime = ITerm2Runtime(None, DEFAULT_CONFIG)

    ack = asyncio.run(runtime.retheme_window("flex", WindowLaunch(window_id="flex", theme="focus")))

    assert ack == "Window 'flex' re-themed"
    assert [tab.title for tab in window.tabs] == ["Focus Timer", "Tasks", "Notes"]
    first = window.tabs[0]
    assert len(first.current_session.profiles) == 1
    # The existing tab keeps what runs in it
    assert first.current_session.injected == []
    assert window.tabs[1].current_session.injected
    assert first.activated == 1


def test_retheme_leaves_extra_tabs_open(fake_app):
    window = FakeWindow("pty-3", tag="flex", tab_count=4)
    fake_app.terminal_windows = [window]
    runtime = ITerm2Runtime(None, DEFAULT_CONFIG)

    asyncio.run(runtime.retheme_window("flex", WindowLaunch(window_id="flex", theme="journal")))

    assert len(window.tabs) == 4
    assert [tab.title for tab in window.tabs[:3]] == ["Journal", "Notes", "Tasks"]
    assert window.tabs[3].title is None


def test_retheme_non_workspace_window_is_a_no_op(fake_app):
    window = FakeWindow("pty-2", tag="daily-note")
    fake_app.terminal_windows = [window]
    runtime = ITerm2Runtime(None, DEFAULT_CONFIG)

    ack = asyncio.run(runtime.retheme_window(
        "daily-note", WindowLaunch(window_id="daily-note", theme="focus")
    ))

    assert ack == "Window 'daily-note' has no theme"
    assert window.tabs[0].title is None


def test_retheme_closed_window_raises(fake_app):
    runtime = ITerm2Runtime(None, DEFAULT_CONFIG)
    with pytest.raises(RuntimeCallError, match="not found"):
        asyncio.run(runtime.retheme_window("flex", WindowLaunch(window_id="flex", theme="focus")))
