# =============================================================================
# Dashboard Preferences
# =============================================================================

from __future__ import annotations

import errno
import os
import tempfile
import tomllib
from pathlib import Path

from loguru import logger

from .config_loader import PREFERENCES_PATH
from .models import ALL_CATEGORIES


def load_preferences(path: Path = PREFERENCES_PATH) -> dict:
    """
    Load dashboard preferences from TOML file.

    Returns:
        dict with keys: last_category (str), check_shortcuts_on_start (bool)
    """
    defaults = {
        "last_category": ALL_CATEGORIES,
        "check_shortcuts_on_start": True,
    }

    if not path.exists():
        logger.debug(
            "Preferences file does not exist, using defaults",
            operation="load_preferences",
            status="default",
            file=str(path),
        )
        return defaults

    try:
        with open(path, "rb") as f:
            prefs = tomllib.load(f)

        result = {**defaults, **prefs}
        logger.debug(
            "Preferences loaded successfully",
            operation="load_preferences",
            status="success",
            last_category=result.get("last_category"),
        )
        return result

    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(
            "Failed to load preferences, using defaults",
            operation="load_preferences",
            status="fallback",
            file=str(path),
            error=str(e),
            error_type=type(e).__name__,
        )
        return defaults


def atomic_write_file(path: Path, content: str) -> None:
    """
    Write file atomically using temp file -> fsync -> rename.

    Raises:
        OSError: If write fails (including disk full - errno.ENOSPC)
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd, temp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
    )

    try:
        with os.fdopen(temp_fd, "w") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        os.replace(temp_path, path)

        logger.debug(
            "Atomic file write successful",
            operation="atomic_write_file",
            path=str(path),
        )

    except OSError as e:
        try:
            os.unlink(temp_path)
        except OSError:
            pass

        if e.errno == errno.ENOSPC:
            raise OSError(f"Disk full - cannot write to {path}") from e
        raise


def _toml_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def save_preferences(prefs: dict, path: Path = PREFERENCES_PATH) -> bool:
    """
    Save dashboard preferences to TOML file atomically.

    Returns:
        True when written, False if the write failed (logged, not raised)
    """
    lines = [
        "# Workspace Hub dashboard preferences",
        "# Delete this file to reset",
        "",
        f"last_category = {_toml_string(str(prefs.get('last_category') or ALL_CATEGORIES))}",
        "check_shortcuts_on_start = "
        f"{'true' if prefs.get('check_shortcuts_on_start', True) else 'false'}",
    ]
    content = "\n".join(lines) + "\n"

    try:
        atomic_write_file(path, content)
    except OSError as e:
        logger.error(
            "Failed to save preferences - dashboard choices may not persist",
            operation="save_preferences",
            status="failed",
            file=str(path),
            error=str(e),
        )
        return False

    logger.debug(
        "Preferences saved successfully",
        operation="save_preferences",
        status="success",
        file=str(path),
        last_category=prefs.get("last_category"),
    )
    return True
