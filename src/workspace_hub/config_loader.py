# =============================================================================
# Configuration Loading
# =============================================================================

from __future__ import annotations

import copy
import os
import re
import shutil
import time
import tomllib
from pathlib import Path

from loguru import logger

from .errors import Error, ErrorType, Result

CONFIG_DIR = Path("~/.config/workspace-hub").expanduser()
CONFIG_FILENAME = "hub.toml"
PREFERENCES_PATH = CONFIG_DIR / "preferences.toml"
CONFIG_ENV_VAR = "WORKSPACE_HUB_CONFIG"

# Settle delay bounds (milliseconds) - hundreds of ms, never seconds
MIN_SETTLE_DELAY_MS = 50
MAX_SETTLE_DELAY_MS = 2000

# Default configuration - the built-in window catalog, usable without a user file
DEFAULT_CONFIG = {
    "hub": {
        "settle_delay_ms": 500,
        "shortcut_modifiers": ["cmd", "alt", "shift"],
        "refresh_on_layout_change": True,
        "refresh_failure_threshold": 3,
    },
    "categories": [
        {
            "id": "journal",
            "name": "Journal",
            "color": "#28a745",
            "description": "Daily notes and reflections",
        },
        {
            "id": "tasks",
            "name": "Tasks",
            "color": "#dc3545",
            "description": "What you are working on right now",
        },
        {
            "id": "workspace",
            "name": "Workspace",
            "color": "#007acc",
            "description": "Flexible tabs for quick notes, maths and timers",
        },
    ],
    "windows": [
        {
            "id": "daily-note",
            "title": "Daily Note",
            "description": "Today's notes, goals and reflections",
            "icon": "📝",
            "category": "journal",
            "width": 500,
            "height": 600,
            "x": 100,
            "y": 100,
            "shortcut": "d",
            "screen": "daily-note",
        },
        {
            "id": "current-task",
            "title": "Current Task",
            "description": "Active and completed tasks by priority",
            "icon": "✅",
            "category": "tasks",
            "width": 500,
            "height": 400,
            "x": 150,
            "y": 150,
            "shortcut": "t",
            "screen": "current-task",
        },
        {
            "id": "flex",
            "title": "Flex Window",
            "description": "A flexible workspace for quick tasks and tools",
            "icon": "🎯",
            "category": "workspace",
            "width": 600,
            "height": 600,
            "x": 200,
            "y": 200,
            "shortcut": "s",
            "screen": "workspace",
            "config": {"theme": "default", "default_tab": "notes"},
        },
        {
            "id": "flexible-workspace-focus",
            "title": "Focus Session",
            "description": "Pomodoro-first workspace with a dark palette",
            "icon": "🍅",
            "category": "workspace",
            "width": 600,
            "height": 600,
            "x": 240,
            "y": 240,
            "config": {"theme": "focus", "default_tab": "timer"},
        },
    ],
    # Screen id -> command run in a freshly created window ("" = plain shell)
    "screens": {
        "daily-note": "",
        "current-task": "",
        "workspace": "",
        "dashboard": "",
    },
    # Workspace tab id -> command run in that tab
    "tab_commands": {
        "notes": "",
        "calculator": "bc -l",
        "timer": "",
        "tasks": "",
        "journal": "",
    },
}


def config_path() -> Path:
    """Config file location, honouring ``WORKSPACE_HUB_CONFIG``."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return CONFIG_DIR / CONFIG_FILENAME


def extract_toml_error_context(error: tomllib.TOMLDecodeError, file_path: Path) -> dict:
    """
    Extract line context from TOML parse error.

    Args:
        error: The TOMLDecodeError exception
        file_path: Path to the TOML file

    Returns:
        Dict with line_number, line_content, and formatted_message
    """
    error_str = str(error)
    line_number = None
    line_content = None

    # Common formats: "line 15", "at line 15", "(line 15)"
    line_match = re.search(r"line\s+(\d+)", error_str, re.IGNORECASE)
    if line_match:
        line_number = int(line_match.group(1))

    if line_number and file_path.exists():
        try:
            with open(file_path, "r") as f:
                lines = f.readlines()
                if 0 < line_number <= len(lines):
                    line_content = lines[line_number - 1].rstrip()
        except OSError:
            pass

    if line_number:
        formatted = f"Error on line {line_number}"
        if line_content:
            display_line = line_content[:50] + "..." if len(line_content) > 50 else line_content
            formatted += f": {display_line}"
        formatted += f"\n\nDetails: {error_str}"
    else:
        formatted = f"TOML parse error: {error_str}"

    return {
        "line_number": line_number,
        "line_content": line_content,
        "formatted_message": formatted,
        "raw_error": error_str,
    }


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base dictionary."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config_from_path(path: Path) -> Result[dict]:
    """
    Load configuration from a TOML file, merged over the defaults.

    Args:
        path: Path to the hub TOML file

    Returns:
        Result[dict]: Ok with merged config, or Err with error details
    """
    start_time = time.perf_counter()
    logger.debug(
        "Loading config from path",
        operation="load_config_from_path",
        status="started",
        config_path=str(path),
    )

    if not path.exists():
        logger.error(
            "Config file not found",
            operation="load_config_from_path",
            status="failed",
            config_path=str(path),
        )
        return Result.err(Error(
            error_type=ErrorType.FILE_NOT_FOUND,
            message=f"Config file not found: {path}",
            context={"config_path": str(path)},
        ))

    try:
        with open(path, "rb") as f:
            user_config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        error_context = extract_toml_error_context(e, path)
        logger.error(
            "Invalid TOML syntax in configuration file",
            operation="load_config_from_path",
            status="failed",
            file=str(path),
            line_number=error_context["line_number"],
            line_content=error_context["line_content"],
            error=error_context["formatted_message"],
        )
        return Result.err(Error(
            error_type=ErrorType.PARSE_ERROR,
            message=error_context["formatted_message"],
            context={"config_path": str(path), "line_number": error_context["line_number"]},
            original_exception=e,
        ))
    except OSError as e:
        logger.error(
            "Config file unreadable",
            operation="load_config_from_path",
            status="failed",
            config_path=str(path),
            error=str(e),
        )
        return Result.err(Error(
            error_type=ErrorType.FILE_NOT_FOUND,
            message=f"Config file unreadable: {path}",
            context={"config_path": str(path)},
            original_exception=e,
        ))

    merged = deep_merge(copy.deepcopy(DEFAULT_CONFIG), user_config)
    duration_ms = int((time.perf_counter() - start_time) * 1000)

    logger.debug(
        "Config loaded successfully",
        operation="load_config_from_path",
        status="success",
        config_path=str(path),
        metrics={
            "windows_count": len(merged.get("windows", [])),
            "categories_count": len(merged.get("categories", [])),
            "duration_ms": duration_ms,
        },
    )

    return Result.ok(merged)


def load_hub_config(path: Path | None = None) -> Result[dict]:
    """
    Load the hub configuration, falling back to defaults when no file exists.

    A file that exists but cannot be parsed is an error, never silently
    replaced by defaults.
    """
    path = path or config_path()
    if not path.exists():
        logger.debug(
            "Config file does not exist, using defaults",
            operation="load_hub_config",
            status="default",
            config_path=str(path),
        )
        return Result.ok(copy.deepcopy(DEFAULT_CONFIG))
    return load_config_from_path(path)


def settle_delay_seconds(config: dict) -> float:
    """Configured settle delay, clamped to the supported bounds."""
    raw = config.get("hub", {}).get("settle_delay_ms", DEFAULT_CONFIG["hub"]["settle_delay_ms"])
    try:
        delay_ms = int(raw)
    except (TypeError, ValueError):
        logger.warning(
            "Invalid settle_delay_ms, using default",
            operation="settle_delay_seconds",
            status="fallback",
            configured=raw,
        )
        delay_ms = DEFAULT_CONFIG["hub"]["settle_delay_ms"]
    clamped = max(MIN_SETTLE_DELAY_MS, min(MAX_SETTLE_DELAY_MS, delay_ms))
    if clamped != delay_ms:
        logger.warning(
            "settle_delay_ms out of range, clamped",
            operation="settle_delay_seconds",
            status="clamped",
            configured=delay_ms,
            clamped=clamped,
        )
    return clamped / 1000


def validate_command(command: str, fallback: str = "") -> str:
    """
    Validate that a command's binary exists, falling back to a safe default.

    Args:
        command: The command to validate (e.g., "bc -l")
        fallback: Safe fallback command ("" runs nothing)

    Returns:
        Original command if binary found, otherwise fallback
    """
    if not command:
        return fallback

    parts = command.split()
    if not parts:
        return fallback

    binary = parts[0]
    if shutil.which(binary):
        return command

    logger.warning(
        "Command not found - using fallback",
        operation="validate_command",
        configured_command=command,
        missing_binary=binary,
        fallback_command=fallback,
    )
    return fallback
