"""Registry of top-level CLI command groups."""

import importlib
import inspect

from .base import Command, CommandGroup

COMMAND_MODULES = ("chat", "stream", "auth")


class CommandRegistry:
    """Maps command names and aliases to registered command groups."""

    def __init__(self) -> None:
        self._commands: dict[str, Command] = {}

    def register_command(self, command: Command) -> None:
        """
        Register a command under its name and aliases.

        Raises:
            TypeError: If ``command`` is not a Command instance
            ValueError: If a name or alias is already taken
        """
        if not isinstance(command, Command):
            raise TypeError(f"Expected Command instance, got {type(command)}")

        for name in command.get_all_names():
            if name in self._commands:
                raise ValueError(f"Command '{name}' is already registered")
            self._commands[name] = command

    def discover_commands_from_module(self, module_name: str) -> None:
        """Register every concrete CommandGroup defined in ``module_name``."""
        module = importlib.import_module(module_name)

        for _name, obj in inspect.getmembers(module, inspect.isclass):
            if (
                issubclass(obj, CommandGroup)
                and obj is not CommandGroup
                and obj.__module__ == module.__name__
                and not inspect.isabstract(obj)
                and not self.has_command(obj.name)
            ):
                self.register_command(obj())

    def auto_discover_commands(self, package_name: str = "chatstream.cli.commands") -> None:
        for module in COMMAND_MODULES:
            self.discover_commands_from_module(f"{package_name}.{module}")

    def get_command(self, name: str) -> Command:
        """
        Look up a command by name or alias.

        Raises:
            KeyError: If no command is registered under ``name``
        """
        if name not in self._commands:
            raise KeyError(f"Command '{name}' not found")
        return self._commands[name]

    def get_primary_commands(self) -> list[Command]:
        """Registered commands, once each, in registration order."""
        return [command for name, command in self._commands.items() if name == command.name]

    def has_command(self, name: str) -> bool:
        return name in self._commands

    def clear(self) -> None:
        self._commands.clear()


registry = CommandRegistry()
