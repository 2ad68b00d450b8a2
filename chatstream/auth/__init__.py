"""Stored endpoint and token profiles for the chatstream CLI."""

from .credentials import CredentialManager

__all__ = ["CredentialManager"]
