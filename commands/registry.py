"""
Command registry: the named, front-end invocable operations
"""

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from core.logging_config import get_logger, log_error_with_context
from events import event_bus as default_event_bus, EventBus, EventTypes

logger = get_logger(__name__)

CommandHandler = Callable[[Mapping[str, Any]], Awaitable[Any]]


class CommandError(Exception):
    """Raised by a command with a message meant for the front-end"""
    pass


class CommandArgumentError(CommandError):
    """Raised when a command's arguments cannot be deserialized"""

    def __init__(self, command: str, key: str, message: str):
        self.command = command
        self.key = key
        super().__init__(f"invalid args `{key}` for command `{command}`: {message}")


@dataclass
class CommandResult:
    """Serializable outcome of one command invocation"""
    ok: bool
    data: Any = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, "data": self.data}
        return {"ok": False, "error": self.error}


class CommandRegistry:
    """Registry for managing and invoking commands by name"""

    def __init__(self, bus: Optional[EventBus] = None):
        self.commands: Dict[str, CommandHandler] = {}
        self.bus = bus or default_event_bus

    def register(self, name: str, handler: CommandHandler):
        """
        Register a command

        Args:
            name: Name the front-end invokes
            handler: Coroutine function taking the argument mapping
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Command handler for '{name}' must be a coroutine function")
        self.commands[name] = handler
        logger.debug(f"Registered command: {name}")

    def unregister(self, name: str):
        """Remove a command from the registry"""
        if name in self.commands:
            del self.commands[name]
            logger.debug(f"Unregistered command: {name}")

    def get(self, name: str) -> Optional[CommandHandler]:
        """Get a command handler by name"""
        return self.commands.get(name)

    def names(self) -> List[str]:
        return sorted(self.commands)

    async def invoke(self, name: str, args: Optional[Mapping[str, Any]] = None) -> CommandResult:
        """
        Invoke a command by name.

        Never raises: every failure is turned into a result carrying the
        error message.

        Args:
            name: Command name
            args: Deserialized arguments

        Returns:
            CommandResult with the handler's return value or an error string
        """
        handler = self.get(name)
        if handler is None:
            return self._failed(name, f"Command '{name}' not found")

        if args is None:
            args = {}
        if not isinstance(args, Mapping):
            return self._failed(name, f"invalid args for command `{name}`: expected an object")

        self.bus.emit(EventTypes.COMMAND_INVOKED, {"command": name}, source="CommandRegistry")
        try:
            data = await handler(args)
        except asyncio.CancelledError:
            raise
        except CommandError as e:
            return self._failed(name, str(e))
        except Exception as e:
            log_error_with_context(logger, e, f"command '{name}'", command=name)
            return self._failed(name, f"Command '{name}' failed: {e}")

        self.bus.emit(EventTypes.COMMAND_COMPLETED, {"command": name}, source="CommandRegistry")
        return CommandResult(ok=True, data=data)

    def _failed(self, name: str, message: str) -> CommandResult:
        logger.info(f"Command '{name}' failed: {message}")
        self.bus.emit(EventTypes.COMMAND_FAILED, {"command": name, "error": message},
                      source="CommandRegistry")
        return CommandResult(ok=False, error=message)
