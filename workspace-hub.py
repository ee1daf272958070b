#!/usr/bin/env python3
# /// script
# requires-python = ">=3.11"
# dependencies = ["iterm2", "pyobjc", "loguru", "platformdirs"]
# ///
"""
Workspace Hub
A dashboard window that opens, focuses and closes a catalog of iTerm2 windows

Configuration: ~/.config/workspace-hub/hub.toml (or $WORKSPACE_HUB_CONFIG)

Features:
- TOML window catalog with categories and global shortcuts
- Create-or-focus window lifecycle with settle-then-refresh state tracking
- Themed workspace windows (tab sets, palettes, placeholder banners)
- Structured JSONL logging (machine-readable)

Install into iTerm2's AutoLaunch folder or run from Scripts > Workspace Hub.
"""

import sys
from pathlib import Path

import iterm2

sys.path.insert(0, str(Path(__file__).resolve().parent / "src"))

from workspace_hub.logging_config import setup_logger  # noqa: E402
from workspace_hub.main import main  # noqa: E402

# Initialize logger and run the script
setup_logger()
iterm2.run_until_complete(main)
