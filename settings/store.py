"""
On-disk persistence for the Config record
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from config import SETTINGS_CONFIG
from core.logging_config import get_logger
from .models import Config, ConfigFormatError

logger = get_logger(__name__)


class ConfigStoreError(Exception):
    """Raised when the config file cannot be read, parsed or written"""
    pass


class ConfigStore:
    """Loads and saves the settings record as a single JSON file"""

    def __init__(self,
                 directory: Optional[Union[str, Path]] = None,
                 filename: Optional[str] = None):
        """
        Initialize the store

        Args:
            directory: Folder holding the config file (defaults to the app config dir)
            filename: Config file name (defaults to config.json)
        """
        self.directory = Path(directory) if directory else Path(SETTINGS_CONFIG["directory"])
        self.filename = filename or SETTINGS_CONFIG["filename"]
        self.version = SETTINGS_CONFIG["version"]

    @property
    def path(self) -> Path:
        return self.directory / self.filename

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> Config:
        """
        Read the persisted record.

        A missing file is a first run and yields a default Config.

        Raises:
            ConfigStoreError: On I/O or deserialization faults
        """
        path = self.path
        if not path.exists():
            logger.debug(f"No config file at {path}, using defaults")
            return Config()

        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigStoreError(f"Failed to read config file {path}: {e}") from e

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ConfigFormatError(
                    f"expected a JSON object at the top level, got {type(data).__name__}"
                )
            data.pop("version", None)
            config = Config.from_dict(data)
        except (json.JSONDecodeError, ConfigFormatError) as e:
            raise ConfigStoreError(f"Failed to parse config file {path}: {e}") from e

        logger.debug(f"Loaded config from {path}")
        return config

    def save(self, config: Config) -> None:
        """
        Replace the persisted record with config.

        The JSON is written to a temporary file next to the target and
        renamed over it, so a crash leaves either the old or the new file.

        Raises:
            ConfigStoreError: On I/O or serialization faults
        """
        path = self.path
        payload = {"version": self.version}
        payload.update(config.to_dict())

        try:
            text = json.dumps(payload, indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise ConfigStoreError(f"Failed to serialize config: {e}") from e

        tmp_name = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.directory, prefix=f".{self.filename}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            raise ConfigStoreError(f"Failed to write config file {path}: {e}") from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning(f"Could not remove temporary file {tmp_name}")

        logger.info(f"Saved config to {path}")
