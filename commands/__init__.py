"""
Front-end invocable commands
"""

from .registry import CommandRegistry, CommandResult, CommandError, CommandArgumentError
from .handlers import BackendCommands, build_registry, require_arg

__all__ = [
    "CommandRegistry",
    "CommandResult",
    "CommandError",
    "CommandArgumentError",
    "BackendCommands",
    "build_registry",
    "require_arg",
]
