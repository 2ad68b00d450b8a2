"""
Command base classes for the chatstream CLI.

Top-level commands are ``CommandGroup`` subclasses discovered by the
registry; each group owns its leaf ``Command`` instances.
"""

from abc import ABC, abstractmethod
from argparse import ArgumentParser, Namespace
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from ..client import ChatStreamClient

_REQUIRED_ATTRIBUTES = ("name", "description")


class Command(ABC):
    """A single CLI command."""

    name: str = ""
    aliases: ClassVar[list[str]] = []
    description: str = ""

    # Whether execute() needs a configured ChatStreamClient (i.e. an endpoint)
    requires_client: bool = True

    def __init_subclass__(cls, **kwargs: object) -> None:
        super().__init_subclass__(**kwargs)
        if cls.__module__ == __name__:
            return
        for attribute in _REQUIRED_ATTRIBUTES:
            if not getattr(cls, attribute):
                raise ValueError(
                    f"Command class {cls.__name__} must define a '{attribute}' attribute"
                )

    @abstractmethod
    def add_arguments(self, parser: ArgumentParser) -> None:
        """Add command-specific arguments to its subparser."""

    @abstractmethod
    def execute(self, args: Namespace, client: "ChatStreamClient | None" = None) -> int:
        """
        Run the command.

        Args:
            args: Parsed command arguments
            client: Configured client, or None for commands that work offline

        Returns:
            Exit code (0 for success, non-zero for error)
        """

    def get_all_names(self) -> list[str]:
        return [self.name, *self.aliases]


class CommandGroup(Command):
    """A command made of subcommands, e.g. ``auth login|logout|status``."""

    # Leaf command classes instantiated for every group instance
    subcommand_classes: ClassVar[list[type[Command]]] = []

    def __init__(self) -> None:
        self.subcommands: list[Command] = [cls() for cls in self.subcommand_classes]

    @property
    def dest(self) -> str:
        """Namespace attribute holding the chosen subcommand name."""
        return f"{self.name}_command"

    def find_subcommand(self, name: str | None) -> Command | None:
        return next((c for c in self.subcommands if name in c.get_all_names()), None)

    def resolve(self, args: Namespace) -> Command | None:
        """Leaf command selected by the parsed arguments."""
        return self.find_subcommand(getattr(args, self.dest, None))

    def add_arguments(self, parser: ArgumentParser) -> None:
        subparsers = parser.add_subparsers(dest=self.dest, help=f"{self.description} commands")
        for command in self.subcommands:
            command.add_arguments(
                subparsers.add_parser(
                    command.name, aliases=command.aliases, help=command.description
                )
            )

    def execute(self, args: Namespace, client: "ChatStreamClient | None" = None) -> int:
        chosen = getattr(args, self.dest, None)
        command = self.find_subcommand(chosen)
        if command is not None:
            return command.execute(args, client)

        if chosen:
            print(f"Error: Unknown subcommand '{chosen}' for '{self.name}'")
        else:
            print(f"Error: No subcommand specified for '{self.name}'")
            print(f"Available subcommands: {', '.join(c.name for c in self.subcommands)}")
        return 1
