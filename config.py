"""
Centralized configuration for the desktop backend
"""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Application identity
APP_NAME = "ChatDesk"
APP_IDENTIFIER = "com.chatdesk.app"


def default_config_dir() -> Path:
    """
    Platform application-config directory for this app.

    Mirrors where desktop shells keep per-user settings:
    %APPDATA% on Windows, ~/Library/Application Support on macOS and
    $XDG_CONFIG_HOME (or ~/.config) elsewhere.
    """
    override = os.getenv("CHATDESK_CONFIG_DIR")
    if override:
        return Path(override).expanduser()

    if sys.platform.startswith("win"):
        base = Path(os.getenv("APPDATA") or Path.home() / "AppData" / "Roaming")
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.getenv("XDG_CONFIG_HOME") or Path.home() / ".config")

    return base / APP_IDENTIFIER


# Settings file
SETTINGS_CONFIG = {
    "directory": default_config_dir(),
    "filename": os.getenv("CHATDESK_CONFIG_FILE", "config.json"),
    "version": 1
}

# Remote API probe endpoints (outbound, not under our control)
PROBE_ENDPOINTS = {
    "generate_message": {
        "method": "POST",
        "path": "/api/generate-message",
        "body": "{}",  # Deliberately incomplete so the server answers 400 after auth
        "accept_bad_request": True
    },
    "conversations": {
        "method": "GET",
        "path": "/api/db/conversations",
        "body": None,
        "accept_bad_request": False
    }
}

PROBE_CONFIG = {
    "active": os.getenv("CHATDESK_PROBE", "generate_message"),
}

# Command bridge (local WebSocket the GUI talks to)
BRIDGE_CONFIG = {
    "host": os.getenv("CHATDESK_BRIDGE_HOST", "127.0.0.1"),
    "port": int(os.getenv("CHATDESK_BRIDGE_PORT", "8765")),
    # Browser origins allowed to connect; clients without an Origin header are always accepted
    "allowed_origins": [
        origin.strip() for origin in os.getenv("CHATDESK_BRIDGE_ORIGINS", "").split(",") if origin.strip()
    ],
}

# Logging configuration
LOGGING_CONFIG = {
    "log_level": os.getenv("LOG_LEVEL", "INFO"),
    "log_dir": os.getenv("LOG_DIR", "./logs"),
    "enable_file_logging": os.getenv("ENABLE_FILE_LOGGING", "true").lower() == "true",
    "enable_console_logging": os.getenv("ENABLE_CONSOLE_LOGGING", "true").lower() == "true",
    "structured_logging": os.getenv("ENVIRONMENT", "development").lower() == "production",
    "max_log_size_mb": int(os.getenv("MAX_LOG_SIZE_MB", "10")),
    "backup_count": int(os.getenv("LOG_BACKUP_COUNT", "5")),
}
