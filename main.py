#!/usr/bin/env python3
"""
Main application - wires the config store, connection validator and command
bridge together and serves the GUI until interrupted
"""

import asyncio
import signal
import sys
from typing import Optional

from bridge import CommandBridgeServer
from commands import BackendCommands, build_registry
from config import APP_NAME, BRIDGE_CONFIG, LOGGING_CONFIG, PROBE_CONFIG
from connection import ConnectionValidator, get_probe
from core.config_validator import validate_startup_config, ConfigValidationError
from core.logging_config import setup_logging, get_logger, log_error_with_context
from events import event_bus, EventBus, EventTypes
from settings import ConfigStore


class ChatDeskBackend:
    """Owns the backend components for one process"""

    def __init__(self,
                 store: Optional[ConfigStore] = None,
                 validator: Optional[ConnectionValidator] = None,
                 bus: Optional[EventBus] = None,
                 host: Optional[str] = None,
                 port: Optional[int] = None):
        self.logger = get_logger(__name__)
        self.bus = bus or event_bus

        self.store = store or ConfigStore()
        self.validator = validator or ConnectionValidator(
            probe=get_probe(PROBE_CONFIG["active"]), bus=self.bus
        )
        self.commands = BackendCommands(self.store, self.validator, bus=self.bus)
        self.registry = build_registry(self.commands, bus=self.bus)
        self.bridge = CommandBridgeServer(
            self.registry,
            host=host if host is not None else BRIDGE_CONFIG["host"],
            port=port if port is not None else BRIDGE_CONFIG["port"],
            bus=self.bus,
        )

    async def run(self):
        """Serve the command bridge until cancelled"""
        self.logger.info(f"Starting {APP_NAME} backend", extra={"extra_data": {
            "config_path": str(self.store.path),
            "probe": self.validator.probe.name,
            "commands": self.registry.names(),
        }})
        self.bus.emit(EventTypes.SYSTEM_START, {"config_path": str(self.store.path)},
                      source="ChatDeskBackend")
        try:
            await self.bridge.serve()
        except Exception as e:
            log_error_with_context(self.logger, e, "backend run", config_path=str(self.store.path))
            self.bus.emit(EventTypes.SYSTEM_ERROR, {
                "error_type": type(e).__name__,
                "error_message": str(e),
            }, source="ChatDeskBackend")
            raise
        finally:
            self.bus.emit(EventTypes.SYSTEM_STOP, {}, source="ChatDeskBackend")
            self.logger.info(f"{APP_NAME} backend stopped")


def main() -> int:
    # Setup logging system first so validation problems are recorded
    setup_logging(LOGGING_CONFIG)
    logger = get_logger(__name__)

    try:
        validate_startup_config()
    except ConfigValidationError as e:
        logger.error(f"Configuration validation failed: {e}")
        print("Please fix the configuration errors and try again.", file=sys.stderr)
        return 1

    backend = ChatDeskBackend()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    task = loop.create_task(backend.run())

    def signal_handler(sig, frame):
        """Handle Ctrl+C gracefully"""
        logger.info("Shutting down gracefully...")
        loop.call_soon_threadsafe(task.cancel)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        loop.run_until_complete(task)
    except asyncio.CancelledError:
        pass
    except Exception as e:
        logger.error(f"Backend stopped with an error: {e}")
        return 1
    finally:
        event_bus.shutdown()
        loop.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
