# =============================================================================
# Shortcut Bridge
# =============================================================================

from __future__ import annotations

import re
from dataclasses import dataclass

from loguru import logger

from .catalog import WindowCatalog
from .dispatcher import LifecycleDispatcher
from .errors import Error, ErrorType, Result
from .runtime import RuntimeCallError, WindowRuntime

UNKNOWN_STATUS = "unknown"

_STATUS_PAIR = re.compile(r"([^:,]+):\s*(true|false)", re.IGNORECASE)

MODIFIER_LABELS = {
    "cmd": "Cmd",
    "command": "Cmd",
    "alt": "Alt",
    "option": "Alt",
    "opt": "Alt",
    "shift": "Shift",
    "ctrl": "Ctrl",
    "control": "Ctrl",
}


@dataclass(frozen=True)
class ShortcutStatus:
    """Status text reported by the host, plus whether it reads as registered.

    ``registered`` is None when the text cannot be interpreted.
    """

    text: str
    registered: bool | None

    @classmethod
    def from_report(cls, text: str) -> "ShortcutStatus":
        pairs = _STATUS_PAIR.findall(text)
        if pairs:
            return cls(text=text, registered=all(v.lower() == "true" for _, v in pairs))
        lowered = text.lower()
        if "not registered" in lowered or "not available" in lowered:
            return cls(text=text, registered=False)
        if "registered" in lowered:
            return cls(text=text, registered=True)
        return cls(text=text, registered=None)

    @classmethod
    def unknown(cls) -> "ShortcutStatus":
        return cls(text=UNKNOWN_STATUS, registered=None)


def format_shortcut(key: str, modifiers: list[str]) -> str:
    """``("d", ["cmd", "alt", "shift"])`` -> ``"Cmd+Alt+Shift+D"``."""
    labels = [MODIFIER_LABELS.get(m.lower(), m.title()) for m in modifiers]
    return "+".join([*labels, key.upper()])


class ShortcutBridge:
    """Routes fired shortcut keys to catalog entries and on to the dispatcher."""

    def __init__(self, runtime: WindowRuntime, dispatcher: LifecycleDispatcher,
                 catalog: WindowCatalog | None = None):
        self.runtime = runtime
        self.dispatcher = dispatcher
        self.catalog = catalog
        self.last_status: ShortcutStatus = ShortcutStatus.unknown()

    async def status(self) -> Result[ShortcutStatus]:
        """Query host registration; on failure the shown status becomes unknown."""
        try:
            report = await self.runtime.check_shortcuts_registered()
        except RuntimeCallError as e:
            self.last_status = ShortcutStatus.unknown()
            logger.warning(
                "Shortcut status query failed",
                operation="shortcut_status",
                status="failed",
                error=str(e),
            )
            return Result.err(Error(
                error_type=ErrorType.STATUS_ERROR,
                message=f"Shortcut status unavailable: {e}",
                context={"call": e.call},
                original_exception=e,
            ))

        self.last_status = ShortcutStatus.from_report(report)
        logger.info(
            "Shortcut status",
            operation="shortcut_status",
            status="success",
            report=report,
            registered=self.last_status.registered,
        )
        return Result.ok(self.last_status)

    async def dispatch(self, key: str) -> Result[str] | None:
        """
        Open the window bound to ``key``.

        Returns None (a no-op) when no catalog entry carries the key: the
        catalog and the host's shortcut registration can change independently.
        """
        if self.catalog is None:
            logger.debug(
                "Shortcut fired before catalog loaded, ignoring",
                operation="shortcut_dispatch",
                status="no_catalog",
                key=key,
            )
            return None

        definition = self.catalog.find_by_shortcut(key)
        if definition is None:
            logger.debug(
                "No catalog entry for shortcut, ignoring",
                operation="shortcut_dispatch",
                status="no_match",
                key=key,
            )
            return None

        logger.info(
            "Shortcut matched",
            operation="shortcut_dispatch",
            status="matched",
            key=key,
            window_id=definition.id,
        )
        return await self.dispatcher.create(definition.id)
