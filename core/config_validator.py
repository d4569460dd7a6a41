"""
Configuration validation.

Startup settings (logging, command bridge, probe selection, settings
directory) are checked before the backend starts so misconfigurations fail
early with clear messages. Saved Config records get softer checks that only
produce warnings.
"""

import os
from typing import Any, Dict, List, Optional, Tuple
from pathlib import Path

from security import APIKeyValidator, InputSanitizer, InputValidationError
from .logging_config import get_logger

logger = get_logger(__name__)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails"""
    pass


class ConfigValidator:
    """Validates application configuration before startup"""

    VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

    def __init__(self,
                 logging_config: Optional[Dict[str, Any]] = None,
                 bridge_config: Optional[Dict[str, Any]] = None,
                 probe_config: Optional[Dict[str, Any]] = None,
                 settings_config: Optional[Dict[str, Any]] = None):
        """
        Args default to the module-level dicts in config.py; tests pass their own.
        """
        import config

        self.logging_config = logging_config if logging_config is not None else config.LOGGING_CONFIG
        self.bridge_config = bridge_config if bridge_config is not None else config.BRIDGE_CONFIG
        self.probe_config = probe_config if probe_config is not None else config.PROBE_CONFIG
        self.settings_config = settings_config if settings_config is not None else config.SETTINGS_CONFIG

        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate_all(self) -> Tuple[bool, List[str], List[str]]:
        """
        Validate all configuration settings.

        Returns:
            Tuple of (is_valid, errors, warnings)
        """
        self.errors.clear()
        self.warnings.clear()

        self._validate_logging_config()
        self._validate_bridge_config()
        self._validate_probe_config()
        self._validate_settings_path()

        is_valid = len(self.errors) == 0
        return is_valid, self.errors.copy(), self.warnings.copy()

    def _validate_logging_config(self):
        log_level = str(self.logging_config.get("log_level", "INFO"))
        if log_level.upper() not in self.VALID_LOG_LEVELS:
            self.errors.append(
                f"Invalid log level '{log_level}'. Must be one of: {', '.join(self.VALID_LOG_LEVELS)}"
            )

        max_size = self.logging_config.get("max_log_size_mb", 10)
        if max_size < 1 or max_size > 1000:
            self.warnings.append(f"Log file size {max_size}MB may be {'too small' if max_size < 5 else 'too large'}. Recommended: 5-100MB")

        backup_count = self.logging_config.get("backup_count", 5)
        if backup_count < 1 or backup_count > 50:
            self.warnings.append(f"Log backup count {backup_count} may be {'too low' if backup_count < 3 else 'too high'}. Recommended: 3-20")

    def _validate_bridge_config(self):
        port = self.bridge_config.get("port")
        if not isinstance(port, int) or not (0 <= port <= 65535):
            self.errors.append(f"Invalid command bridge port: {port!r}. Must be 0-65535")
        elif 0 < port < 1024:
            self.warnings.append(f"Command bridge port {port} is privileged and may need elevated rights")

        host = self.bridge_config.get("host") or ""
        if not host:
            self.errors.append("Command bridge host is empty")
        elif host not in ("127.0.0.1", "localhost", "::1"):
            self.warnings.append(
                f"Command bridge listens on '{host}'; anything that can reach it can read the stored API key"
            )

        for origin in self.bridge_config.get("allowed_origins", []):
            if origin == "null":
                self.warnings.append(
                    "Command bridge allows the 'null' origin; sandboxed pages and local files can read the stored API key"
                )
            elif "://" not in origin:
                self.errors.append(
                    f"Invalid command bridge origin '{origin}'. Must look like scheme://host[:port]"
                )

    def _validate_probe_config(self):
        from connection.probes import PROBES

        active = self.probe_config.get("active")
        if active not in PROBES:
            self.errors.append(
                f"Unknown connection probe '{active}'. Must be one of: {', '.join(sorted(PROBES))}"
            )

    def _validate_settings_path(self):
        directory = Path(self.settings_config.get("directory", "."))

        # Walk up to the first existing ancestor; that is where mkdir will start
        existing = directory
        while not existing.exists() and existing != existing.parent:
            existing = existing.parent

        if not existing.is_dir():
            self.errors.append(f"Settings path '{existing}' exists but is not a directory")
        elif not os.access(existing, os.W_OK):
            self.errors.append(f"Settings directory '{existing}' is not writable")


def validate_config_record(config) -> List[str]:
    """
    Soft checks on a Config record about to be saved. Empty values are
    allowed and nothing here rejects a record.

    Returns:
        List of warnings
    """
    warnings: List[str] = []

    if config.server_url:
        if config.server_url != config.server_url.strip():
            warnings.append("Server URL has leading or trailing whitespace")
        try:
            InputSanitizer.validate_server_url(config.server_url)
        except InputValidationError as e:
            warnings.append(str(e))
        if not config.api_key:
            warnings.append("Server URL is set but the API key is empty")

    if config.api_key:
        warnings.extend(APIKeyValidator.key_warnings(config.api_key))

    return warnings


def validate_startup_config(validator: Optional[ConfigValidator] = None) -> List[str]:
    """
    Validate configuration on startup.

    Returns:
        The warnings found, already logged

    Raises:
        ConfigValidationError: If critical configuration errors are found
    """
    validator = validator or ConfigValidator()
    is_valid, errors, warnings = validator.validate_all()

    for warning in warnings:
        logger.warning(f"Configuration warning: {warning}")

    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")

        error_msg = f"Found {len(errors)} configuration error(s) that must be fixed before starting the application: "
        error_msg += "; ".join(errors)
        raise ConfigValidationError(error_msg)

    logger.info(f"Configuration validated with {len(warnings)} warning(s)")
    return warnings
