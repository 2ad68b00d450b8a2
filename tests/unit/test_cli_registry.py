"""
Tests for CLI command registry functionality.
"""

from argparse import ArgumentParser, Namespace
from typing import TYPE_CHECKING, ClassVar, Optional

import pytest

from chatstream.cli.base import Command, CommandGroup
from chatstream.cli.registry import CommandRegistry

if TYPE_CHECKING:
    from chatstream.client import ChatStreamClient


class MockCommand(Command):
    """Mock command for testing."""

    name = "test"
    aliases: ClassVar[list[str]] = ["t"]
    description = "Test command"
    requires_client = False

    def __init__(self):
        self.executed = False
        self.execution_args = None
        self.execution_client = None

    def add_arguments(self, parser: ArgumentParser) -> None:
        parser.add_argument("--test-flag", action="store_true", help="Test flag")

    def execute(self, args: Namespace, client: Optional["ChatStreamClient"] = None) -> int:
        self.executed = True
        self.execution_args = args
        self.execution_client = client
        return 0


class MockSubCommand(Command):
    """Mock subcommand for testing."""

    name = "sub"
    aliases: ClassVar[list[str]] = ["s"]
    description = "Test subcommand"

    def __init__(self):
        self.executed = False

    def add_arguments(self, parser: ArgumentParser) -> None:
        parser.add_argument("--sub-flag", action="store_true", help="Sub flag")

    def execute(self, args: Namespace, client: Optional["ChatStreamClient"] = None) -> int:
        self.executed = True
        return 0


class MockCommandGroup(CommandGroup):
    """Mock command group for testing."""

    name = "group"
    aliases: ClassVar[list[str]] = ["g"]
    description = "Test command group"
    subcommand_classes: ClassVar[list[type[Command]]] = [MockSubCommand]


class TestCommandRegistry:
    """Test cases for CommandRegistry."""

    def test_register_command(self):
        """Test registering a single command."""
        registry = CommandRegistry()
        command = MockCommand()

        registry.register_command(command)

        # Should be registered by both name and alias
        assert registry.has_command("test")
        assert registry.has_command("t")
        assert registry.get_command("test") is command
        assert registry.get_command("t") is command

    def test_register_command_duplicate_name(self):
        """Test that registering duplicate command names raises error."""
        registry = CommandRegistry()
        registry.register_command(MockCommand())

        with pytest.raises(ValueError, match="Command 'test' is already registered"):
            registry.register_command(MockCommand())

    def test_register_non_command_rejected(self):
        registry = CommandRegistry()
        with pytest.raises(TypeError):
            registry.register_command(MockCommand)

    def test_get_command_not_found(self):
        """Test getting non-existent command raises KeyError."""
        registry = CommandRegistry()

        with pytest.raises(KeyError, match="Command 'nonexistent' not found"):
            registry.get_command("nonexistent")

    def test_get_primary_commands(self):
        """Test getting primary commands (excludes aliases)."""
        registry = CommandRegistry()
        command = MockCommand()
        group = MockCommandGroup()
        registry.register_command(command)
        registry.register_command(group)

        # Each command once, not once per alias
        assert registry.get_primary_commands() == [command, group]

    def test_auto_discover_commands(self):
        """The built-in command groups are found by name and alias."""
        registry = CommandRegistry()
        registry.auto_discover_commands()

        names = [command.name for command in registry.get_primary_commands()]
        assert names == ["chat", "stream", "auth"]
        assert registry.get_command("c") is registry.get_command("chat")
        assert registry.get_command("a") is registry.get_command("auth")

    def test_auto_discover_is_idempotent(self):
        registry = CommandRegistry()
        registry.auto_discover_commands()
        registry.auto_discover_commands()
        assert len(registry.get_primary_commands()) == 3

    def test_clear_registry(self):
        """Test clearing the registry."""
        registry = CommandRegistry()
        registry.register_command(MockCommand())

        assert registry.has_command("test")

        registry.clear()

        assert not registry.has_command("test")
        assert registry.get_primary_commands() == []


class TestCommand:
    """Test cases for Command base class."""

    def test_command_validation(self):
        """Test that Command subclasses must define required attributes."""

        with pytest.raises(ValueError, match="must define a 'name' attribute"):

            class InvalidCommand1(Command):
                description = "Test"

                def add_arguments(self, parser):
                    pass

                def execute(self, args, client=None):
                    return 0

        with pytest.raises(ValueError, match="must define a 'description' attribute"):

            class InvalidCommand2(Command):
                name = "test"

                def add_arguments(self, parser):
                    pass

                def execute(self, args, client=None):
                    return 0

    def test_get_all_names(self):
        """Test getting all names for a command."""
        assert MockCommand().get_all_names() == ["test", "t"]

    def test_requires_client_default(self):
        assert MockSubCommand.requires_client is True
        assert MockCommand.requires_client is False


class TestCommandGroup:
    """Test cases for CommandGroup base class."""

    def test_subcommands_instantiated_per_group(self):
        first, second = MockCommandGroup(), MockCommandGroup()

        assert len(first.subcommands) == 1
        assert isinstance(first.subcommands[0], MockSubCommand)
        assert first.subcommands[0] is not second.subcommands[0]

    def test_find_subcommand_by_alias(self):
        group = MockCommandGroup()
        assert group.find_subcommand("s") is group.subcommands[0]
        assert group.find_subcommand("missing") is None

    def test_resolve_reads_group_dest(self):
        group = MockCommandGroup()
        assert group.resolve(Namespace(group_command="sub")) is group.subcommands[0]
        assert group.resolve(Namespace()) is None

    def test_add_arguments_parses_subcommand(self):
        group = MockCommandGroup()
        parser = ArgumentParser()
        group.add_arguments(parser)

        args = parser.parse_args(["s", "--sub-flag"])
        assert args.group_command == "s"
        assert args.sub_flag is True

    def test_execute_subcommand(self):
        """Test executing a subcommand through the group."""
        group = MockCommandGroup()

        result = group.execute(Namespace(group_command="sub"), None)

        assert result == 0
        assert group.subcommands[0].executed

    def test_execute_no_subcommand(self, capsys):
        """Test executing group without specifying subcommand."""
        group = MockCommandGroup()

        assert group.execute(Namespace(), None) == 1
        assert "Available subcommands: sub" in capsys.readouterr().out

    def test_execute_unknown_subcommand(self):
        """Test executing group with unknown subcommand."""
        group = MockCommandGroup()

        assert group.execute(Namespace(group_command="unknown"), None) == 1
