"""
Theme profiles for flexible workspace windows.

A theme identifier maps to a tab set, a colour palette and per-tab
placeholder text. The mapping is a lookup table; unknown identifiers get
the ``default`` profile, so ``resolve`` never fails.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from functools import partial
from typing import Callable

DEFAULT_THEME = "default"

PlaceholderFn = Callable[[date], str]


@dataclass(frozen=True)
class Palette:
    primary: str
    secondary: str
    accent: str


@dataclass(frozen=True)
class ThemeTab:
    id: str
    label: str
    glyph: str
    placeholder: PlaceholderFn = field(compare=False, repr=False, default=lambda today: "")

    @property
    def title(self) -> str:
        return f"{self.glyph} {self.label}"


@dataclass(frozen=True)
class ThemeProfile:
    theme: str
    tabs: tuple[ThemeTab, ...]
    palette: Palette
    mode: str = "light"

    @property
    def tab_ids(self) -> tuple[str, ...]:
        return tuple(tab.id for tab in self.tabs)

    def tab(self, tab_id: str) -> ThemeTab | None:
        for tab in self.tabs:
            if tab.id == tab_id:
                return tab
        return None

    def initial_tab(self, default_tab: str | None = None) -> str:
        """The requested tab when this profile has it, else the first tab."""
        if default_tab and self.tab(default_tab) is not None:
            return default_tab
        return self.tabs[0].id

    def placeholder(self, tab_id: str, today: date | None = None) -> str:
        tab = self.tab(tab_id)
        if tab is None:
            return ""
        return tab.placeholder(today or date.today())


# =============================================================================
# Placeholder generators
# =============================================================================


def _long_date(today: date) -> str:
    return f"{today:%A}, {today:%B} {today.day}, {today.year}"


def notes_placeholder(today: date) -> str:
    return "Jot down quick thoughts, ideas, or reminders..."


def calculator_placeholder(today: date) -> str:
    return "Enter calculation (e.g., 2 + 2 * 3)"


def timer_placeholder(today: date, minutes: int = 25, rest: int = 5) -> str:
    return f"{minutes:02d}:00  🍅 Pomodoro Technique: {minutes} min work, {rest} min break"


def tasks_placeholder(today: date) -> str:
    return "Add a new task... (priorities: low, medium, high)"


def journal_placeholder(today: date) -> str:
    return (
        f"{_long_date(today)}\n\n"
        "What's on your mind today?\n\n"
        "• Goals for today\n"
        "• Important thoughts\n"
        "• Ideas and insights\n"
        "• Reflections..."
    )


NOTES = ThemeTab("notes", "Notes", "📝", notes_placeholder)
CALCULATOR = ThemeTab("calculator", "Calculator", "🧮", calculator_placeholder)
TIMER = ThemeTab("timer", "Timer", "⏲️", timer_placeholder)
TASKS = ThemeTab("tasks", "Tasks", "✅", tasks_placeholder)
JOURNAL = ThemeTab("journal", "Journal", "📓", journal_placeholder)

# =============================================================================
# Theme table
# =============================================================================

THEME_PROFILES: dict[str, ThemeProfile] = {
    DEFAULT_THEME: ThemeProfile(
        theme=DEFAULT_THEME,
        tabs=(NOTES, CALCULATOR, TIMER),
        palette=Palette(primary="#007acc", secondary="#6c757d", accent="#28a745"),
        mode="light",
    ),
    "focus": ThemeProfile(
        theme="focus",
        tabs=(
            ThemeTab("timer", "Focus Timer", "⏲️", partial(timer_placeholder, minutes=50, rest=10)),
            TASKS,
            NOTES,
        ),
        palette=Palette(primary="#dc3545", secondary="#343a40", accent="#ffc107"),
        mode="dark",
    ),
    "journal": ThemeProfile(
        theme="journal",
        tabs=(JOURNAL, NOTES, TASKS),
        palette=Palette(primary="#28a745", secondary="#f8f9fa", accent="#007acc"),
        mode="light",
    ),
    "dark": ThemeProfile(
        theme="dark",
        tabs=(NOTES, CALCULATOR, TIMER),
        palette=Palette(primary="#1e1e1e", secondary="#d4d4d4", accent="#569cd6"),
        mode="dark",
    ),
}


def known_themes() -> tuple[str, ...]:
    return tuple(THEME_PROFILES)


def resolve(theme: str | None) -> ThemeProfile:
    """Profile for ``theme``; unknown or empty identifiers get the default."""
    if not theme:
        return THEME_PROFILES[DEFAULT_THEME]
    return THEME_PROFILES.get(theme.strip().lower(), THEME_PROFILES[DEFAULT_THEME])


def hex_to_rgb(value: str) -> tuple[int, int, int]:
    """``"#007acc"`` -> ``(0, 122, 204)``."""
    value = value.lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    if len(value) != 6:
        raise ValueError(f"Not a hex colour: #{value}")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)
