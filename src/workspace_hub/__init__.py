"""Window registry and lifecycle orchestration for an iTerm2 workspace hub."""

__version__ = "0.3.0"

from .catalog import WindowCatalog, load_catalog
from .dispatcher import LifecycleDispatcher
from .errors import Error, ErrorReport, ErrorType, Result
from .models import WindowCategory, WindowConfig, WindowDefinition, WindowLaunch
from .runtime import RuntimeCallError, WindowRuntime
from .shortcuts import ShortcutBridge, ShortcutStatus
from .tracker import OpenWindowTracker

__all__ = [
    "Error",
    "ErrorReport",
    "ErrorType",
    "LifecycleDispatcher",
    "OpenWindowTracker",
    "Result",
    "RuntimeCallError",
    "ShortcutBridge",
    "ShortcutStatus",
    "WindowCatalog",
    "WindowCategory",
    "WindowConfig",
    "WindowDefinition",
    "WindowLaunch",
    "WindowRuntime",
    "load_catalog",
]
