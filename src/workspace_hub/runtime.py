"""Remote call surface of the host window-management runtime."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import WindowLaunch


class RuntimeCallError(Exception):
    """A call into the host runtime failed or was refused."""

    def __init__(self, call: str, message: str, window_id: str | None = None):
        super().__init__(message)
        self.call = call
        self.window_id = window_id


class WindowRuntime(ABC):
    """
    Asynchronous calls consumed from the host runtime.

    Every method may raise ``RuntimeCallError``; callers wrap results in
    ``Result`` and never let the exception escape a component boundary.
    """

    @abstractmethod
    async def get_available_windows(self) -> dict:
        """Catalog payload: ``{"windows": [...], "categories": [...]}``."""

    @abstractmethod
    async def get_open_windows(self) -> list[str]:
        """Full snapshot of open window identifiers (not a delta)."""

    @abstractmethod
    async def create_window(self, window_id: str) -> str:
        """Create the window, or focus it when already open."""

    @abstractmethod
    async def close_window(self, window_id: str) -> str:
        """Destroy the window."""

    @abstractmethod
    async def test_shortcut(self, key: str) -> str:
        """Fire the shortcut handler for ``key`` as if it had been pressed."""

    @abstractmethod
    async def check_shortcuts_registered(self) -> str:
        """Opaque registration status string."""

    @abstractmethod
    async def retheme_window(self, window_id: str, launch: WindowLaunch) -> str:
        """Re-resolve and apply ``launch.theme`` to an open window."""
