"""Catalog records: window definitions, categories and launch parameters."""

from __future__ import annotations

from dataclasses import dataclass, replace

DASHBOARD_ID = "dashboard"
ALL_CATEGORIES = "all"
UNCATEGORIZED = "uncategorized"

# Fallback geometry for windows the catalog does not describe
DEFAULT_WIDTH = 500
DEFAULT_HEIGHT = 500
DEFAULT_X = 250
DEFAULT_Y = 250


@dataclass(frozen=True)
class WindowConfig:
    """Instantiation parameters forwarded to the window's screen."""

    theme: str | None = None
    default_tab: str | None = None


@dataclass(frozen=True)
class WindowCategory:
    id: str
    name: str
    color: str = "#6c757d"
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "WindowCategory":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            color=str(data.get("color", "#6c757d")),
            description=str(data.get("description", "")),
        )


@dataclass(frozen=True)
class WindowDefinition:
    id: str
    title: str
    description: str = ""
    icon: str = ""
    category: str = UNCATEGORIZED
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    x: int = DEFAULT_X
    y: int = DEFAULT_Y
    shortcut: str | None = None
    screen: str | None = None
    config: WindowConfig | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "WindowDefinition":
        """Build a definition from a ``[[windows]]`` TOML table.

        Raises:
            KeyError: ``id`` is missing.
            ValueError: a geometry field is not an integer.
        """
        window_id = str(data["id"])
        raw_config = data.get("config")
        config = None
        if raw_config:
            config = WindowConfig(
                theme=raw_config.get("theme"),
                default_tab=raw_config.get("default_tab"),
            )
        shortcut = data.get("shortcut")
        return cls(
            id=window_id,
            title=str(data.get("title") or window_id),
            description=str(data.get("description", "")),
            icon=str(data.get("icon", "")),
            category=str(data.get("category") or UNCATEGORIZED),
            width=int(data.get("width", DEFAULT_WIDTH)),
            height=int(data.get("height", DEFAULT_HEIGHT)),
            x=int(data.get("x", DEFAULT_X)),
            y=int(data.get("y", DEFAULT_Y)),
            shortcut=str(shortcut).strip().lower() if shortcut else None,
            screen=data.get("screen") or window_id,
            config=config,
        )

    @classmethod
    def fallback(cls, window_id: str) -> "WindowDefinition":
        """Definition used when the runtime is asked for an uncatalogued id."""
        return cls(id=window_id, title=f"Window ({window_id})", screen=window_id)

    @property
    def display_name(self) -> str:
        return f"{self.icon} {self.title}".strip()

    def uncategorized(self) -> "WindowDefinition":
        return replace(self, category=UNCATEGORIZED)


@dataclass(frozen=True)
class WindowLaunch:
    """Startup parameters a window is instantiated with."""

    window_id: str
    theme: str | None = None
    default_tab: str | None = None

    @classmethod
    def for_definition(cls, definition: WindowDefinition) -> "WindowLaunch":
        config = definition.config or WindowConfig()
        return cls(
            window_id=definition.id,
            theme=config.theme,
            default_tab=config.default_tab,
        )
