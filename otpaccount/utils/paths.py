#!/usr/bin/env python3
"""
Path utilities for the OTP Account Service.

config.json, the encrypted account store and the audit database all live
in one per-user directory. Every component asks this module for it so the
CLI commands of one user always operate on the same files.
"""

from __future__ import annotations

import os
import stat
import sys
from pathlib import Path
from typing import Mapping, Optional


ENV_VAR_NAME = "OTPACCOUNT_CONFIG_DIR"
APP_DIR_NAME = "otpaccount"


def user_config_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """
    Return the per-user directory for this platform.

    Windows uses %APPDATA%, macOS uses ~/Library/Application Support and
    everything else follows $XDG_CONFIG_HOME (default ~/.config).
    """
    env = os.environ if environ is None else environ

    if sys.platform == "win32":
        base = env.get("APPDATA") or str(Path.home() / "AppData" / "Roaming")
        return Path(base) / APP_DIR_NAME

    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_DIR_NAME

    base = env.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / APP_DIR_NAME


def resolve_config_dir(explicit_dir: Optional[Path] = None,
                       environ: Optional[Mapping[str, str]] = None) -> Path:
    """
    Pick the data directory: the caller's path, then $OTPACCOUNT_CONFIG_DIR,
    then the per-user default. The directory may not exist yet.
    """
    if explicit_dir:
        return Path(explicit_dir).expanduser()

    env = os.environ if environ is None else environ
    env_path = env.get(ENV_VAR_NAME)
    if env_path:
        return Path(env_path).expanduser()

    return user_config_dir(env)


def ensure_private_dir(path: Path) -> Path:
    """
    Create ``path`` if needed and restrict it to its owner (0700).

    Raises:
        OSError: The directory cannot be created or its mode cannot be set
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    if os.name != "nt":
        os.chmod(path, stat.S_IRWXU)
    return path
