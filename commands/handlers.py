"""
The backend's commands: get_config, save_config and validate_connection
"""

import asyncio
from typing import Any, Dict, Mapping, Optional

from connection import ConnectionValidator, ConnectionValidationError
from core.config_validator import validate_config_record
from core.logging_config import get_logger
from events import event_bus as default_event_bus, EventBus, EventTypes
from security import mask_api_key
from settings import Config, ConfigFormatError, ConfigStore, ConfigStoreError
from .registry import CommandArgumentError, CommandError, CommandRegistry

logger = get_logger(__name__)


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.title() for part in rest)


def require_arg(command: str, args: Mapping[str, Any], key: str, kind: type = str) -> Any:
    """
    Fetch a required argument, accepting its snake_case or camelCase name.

    Raises:
        CommandArgumentError: If the argument is missing or has the wrong type
    """
    for candidate in (key, _camel(key)):
        if candidate in args:
            value = args[candidate]
            break
    else:
        raise CommandArgumentError(
            command, key, f"command {command} missing required key {key}"
        )

    if not isinstance(value, kind):
        raise CommandArgumentError(
            command, key, f"expected {kind.__name__}, got {type(value).__name__}"
        )
    return value


class BackendCommands:
    """Binds the config store and connection validator to the command surface"""

    def __init__(self,
                 store: ConfigStore,
                 validator: ConnectionValidator,
                 bus: Optional[EventBus] = None):
        self.store = store
        self.validator = validator
        self.bus = bus or default_event_bus

    async def get_config(self) -> Config:
        """Current persisted config, or defaults on first run"""
        try:
            config = await asyncio.to_thread(self.store.load)
        except ConfigStoreError as e:
            self.bus.emit(EventTypes.CONFIG_ERROR, {"operation": "load", "error": str(e)},
                          source="BackendCommands")
            raise

        self.bus.emit(EventTypes.CONFIG_LOADED, {"path": str(self.store.path)},
                      source="BackendCommands")
        return config

    async def save_config(self, config: Config) -> None:
        """Persist config, replacing the previous record entirely"""
        for warning in validate_config_record(config):
            logger.warning(f"Saving config with issue: {warning}")

        try:
            await asyncio.to_thread(self.store.save, config)
        except ConfigStoreError as e:
            self.bus.emit(EventTypes.CONFIG_ERROR, {"operation": "save", "error": str(e)},
                          source="BackendCommands")
            raise

        logger.info(f"Config saved (server_url={config.server_url!r}, "
                    f"api_key={mask_api_key(config.api_key)})")
        self.bus.emit(EventTypes.CONFIG_SAVED, {
            "path": str(self.store.path),
            "server_url": config.server_url,
        }, source="BackendCommands")

    async def validate_connection(self, server_url: str, api_key: str) -> bool:
        """True if the server accepted the key; raises ConnectionValidationError otherwise"""
        return await self.validator.validate(server_url, api_key)

    # Registry adapters --------------------------------------------------

    async def get_config_command(self, args: Mapping[str, Any]) -> Dict[str, Any]:
        try:
            config = await self.get_config()
        except ConfigStoreError as e:
            raise CommandError(str(e)) from e
        return config.to_dict()

    async def save_config_command(self, args: Mapping[str, Any]) -> None:
        raw = require_arg("save_config", args, "config", dict)
        try:
            config = Config.from_dict(raw)
        except ConfigFormatError as e:
            raise CommandArgumentError("save_config", "config", str(e)) from e

        try:
            await self.save_config(config)
        except ConfigStoreError as e:
            raise CommandError(str(e)) from e
        return None

    async def validate_connection_command(self, args: Mapping[str, Any]) -> bool:
        server_url = require_arg("validate_connection", args, "server_url")
        api_key = require_arg("validate_connection", args, "api_key")
        try:
            return await self.validate_connection(server_url, api_key)
        except ConnectionValidationError as e:
            raise CommandError(str(e)) from e


def build_registry(commands: BackendCommands, bus: Optional[EventBus] = None) -> CommandRegistry:
    """Registry exposing the three backend commands"""
    registry = CommandRegistry(bus=bus or commands.bus)
    registry.register("get_config", commands.get_config_command)
    registry.register("save_config", commands.save_config_command)
    registry.register("validate_connection", commands.validate_connection_command)
    return registry
