"""
Credential commands for the chatstream CLI.

Stores the chat endpoint and its bearer token under a named profile.
"""

from argparse import ArgumentParser, Namespace
from typing import TYPE_CHECKING, ClassVar

from ...auth.credentials import CredentialManager
from ..base import Command, CommandGroup
from ..prompt import prompt, secure_prompt

if TYPE_CHECKING:
    from ...client import ChatStreamClient


def _profile(args: Namespace) -> str:
    return getattr(args, "profile", None) or CredentialManager.DEFAULT_PROFILE


def mask_token(token: str) -> str:
    if len(token) <= 8:
        return "*" * len(token)
    return f"{token[:4]}…{token[-4:]}"


class LoginCommand(Command):
    """Save an endpoint (and optional token) to a profile."""

    name = "login"
    aliases: ClassVar[list[str]] = ["l"]
    description = "Save the chat endpoint and bearer token"
    requires_client = False

    def add_arguments(self, parser: ArgumentParser) -> None:
        parser.add_argument(
            "--no-token", action="store_true", help="Endpoint needs no bearer token"
        )

    def execute(self, args: Namespace, client: "ChatStreamClient | None" = None) -> int:
        credentials = CredentialManager(profile=_profile(args))

        endpoint = getattr(args, "endpoint", None) or prompt("Chat endpoint URL: ")
        if not endpoint.startswith(("http://", "https://")):
            print(f"❌ Not an http(s) URL: {endpoint}")
            return 1

        token = None
        if not args.no_token:
            token = getattr(args, "api_key", None) or secure_prompt(
                "Bearer token (leave empty for none): "
            )

        if not credentials.save_profile_info(endpoint=endpoint):
            print("❌ Failed to save profile")
            return 1
        if token and not credentials.save_token(token):
            print("❌ Failed to save token (invalid format or keychain error)")
            return 1

        print(f"✅ Saved profile '{credentials.profile}' → {endpoint}")
        return 0


class StatusCommand(Command):
    """Show what a profile has stored."""

    name = "status"
    aliases: ClassVar[list[str]] = ["s"]
    description = "Show the stored endpoint and token status"
    requires_client = False

    def add_arguments(self, parser: ArgumentParser) -> None:
        pass

    def execute(self, args: Namespace, client: "ChatStreamClient | None" = None) -> int:
        credentials = CredentialManager(profile=_profile(args))
        endpoint = credentials.get_endpoint()
        token = credentials.get_token()
        storage = "OS keychain" if credentials.is_keyring_available else str(
            credentials.CONFIG_FILE
        )

        print(f"\n🔑 Profile: {credentials.profile}")
        print(f"   Endpoint: {endpoint or 'not set'}")
        print(f"   Token:    {mask_token(token) if token else 'not set'}")
        print(f"   Storage:  {storage}")

        others = [p for p in CredentialManager.list_profiles() if p != credentials.profile]
        if others:
            print(f"   Other profiles: {', '.join(others)}")
        return 0 if endpoint else 1


class LogoutCommand(Command):
    """Forget a profile."""

    name = "logout"
    aliases: ClassVar[list[str]] = ["o"]
    description = "Remove the stored endpoint and token"
    requires_client = False

    def add_arguments(self, parser: ArgumentParser) -> None:
        pass

    def execute(self, args: Namespace, client: "ChatStreamClient | None" = None) -> int:
        credentials = CredentialManager(profile=_profile(args))
        if not credentials.clear_profile():
            print(f"❌ Failed to clear profile '{credentials.profile}'")
            return 1
        print(f"👋 Removed profile '{credentials.profile}'")
        return 0


class AuthCommandGroup(CommandGroup):
    """Credential command group."""

    name = "auth"
    aliases: ClassVar[list[str]] = ["a"]
    description = "Manage saved endpoints and tokens"
    requires_client = False
    subcommand_classes: ClassVar[list[type[Command]]] = [
        LoginCommand,
        StatusCommand,
        LogoutCommand,
    ]
