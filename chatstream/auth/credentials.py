"""
Credential storage for chat endpoint profiles.

Bearer tokens live in the OS keychain via ``keyring``:
- macOS: Keychain Access
- Windows: Credential Manager
- Linux: libsecret/KWallet

When no keychain backend is usable (headless CI, containers) tokens fall
back to the profile config file, which is created with 0600 permissions.
Non-sensitive profile data (the endpoint URL) always lives in that file.
"""

import json
import os
from pathlib import Path
import string
import time
from typing import Any
import warnings

import keyring
import keyring.backends.fail
import keyring.errors


def _keyring_backend_usable() -> bool:
    try:
        return not isinstance(keyring.get_keyring(), keyring.backends.fail.Keyring)
    except keyring.errors.KeyringError:
        return False


KEYRING_AVAILABLE = _keyring_backend_usable()


class CredentialManager:
    """Profile-scoped storage for the endpoint and its bearer token."""

    SERVICE_NAME = "chatstream"
    DEFAULT_PROFILE = "default"

    CONFIG_DIR = Path.home() / ".chatstream"
    CONFIG_FILE = CONFIG_DIR / "config.json"

    def __init__(self, profile: str = DEFAULT_PROFILE):
        """
        Initialize credential manager.

        Args:
            profile: Profile name for multi-endpoint setups (default: "default")
        """
        self.profile = profile

    @property
    def _token_key(self) -> str:
        return f"{self.profile}_token"

    def _ensure_config_dir(self) -> None:
        self.CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        # Managed filesystems may refuse the chmod; storage still works.
        try:
            os.chmod(self.CONFIG_DIR, 0o700)
        except PermissionError:
            return

    # ------------------------------------------------------------------
    # Token
    # ------------------------------------------------------------------

    def save_token(self, token: str) -> bool:
        """
        Save the bearer token for this profile.

        Returns:
            True if saved successfully, False otherwise
        """
        if not token or not self._is_valid_token(token):
            return False

        if self.is_keyring_available:
            return bool(
                self._retry_keychain_operation(
                    lambda: keyring.set_password(self.SERVICE_NAME, self._token_key, token)
                )
            )

        warnings.warn(
            "No keychain backend available; storing token in "
            f"{self.CONFIG_FILE} (permissions 0600).",
            UserWarning,
            stacklevel=2,
        )
        config = self._load_config()
        config["profiles"].setdefault(self.profile, {})["token"] = token
        return self._save_config(config)

    def get_token(self) -> str | None:
        """
        Get the bearer token for this profile.

        Returns:
            Token if stored and well-formed, None otherwise
        """
        if self.is_keyring_available:
            token: Any = self._retry_keychain_operation(
                lambda: keyring.get_password(self.SERVICE_NAME, self._token_key),
                return_value=True,
            )
        else:
            token = self._profile_config().get("token")

        if token and not self._is_valid_token(str(token)):
            warnings.warn(
                f"Stored token for profile '{self.profile}' is malformed and was removed. "
                "Run: chatstream auth login",
                UserWarning,
                stacklevel=2,
            )
            self.delete_token()
            return None

        return str(token) if token else None

    def delete_token(self) -> bool:
        """
        Delete the bearer token for this profile.

        Returns:
            True if deleted (or nothing was stored), False on failure
        """
        if self.is_keyring_available:
            return bool(
                self._retry_keychain_operation(
                    lambda: keyring.delete_password(self.SERVICE_NAME, self._token_key),
                    ignore_password_delete_error=True,
                )
            )

        config = self._load_config()
        profile_config = config["profiles"].get(self.profile, {})
        if "token" in profile_config:
            profile_config.pop("token")
            return self._save_config(config)
        return True

    # ------------------------------------------------------------------
    # Profile data
    # ------------------------------------------------------------------

    def save_profile_info(self, endpoint: str | None = None) -> bool:
        """Save non-sensitive profile data to the config file."""
        config = self._load_config()
        profile_config = config["profiles"].setdefault(self.profile, {})
        if endpoint:
            profile_config["endpoint"] = endpoint
        return self._save_config(config)

    def get_profile_info(self) -> dict:
        """Non-sensitive profile data (the stored token is never included)."""
        return {k: v for k, v in self._profile_config().items() if k != "token"}

    def get_endpoint(self) -> str | None:
        return self._profile_config().get("endpoint")

    def clear_profile(self) -> bool:
        """
        Remove the token and all config data of this profile.

        Returns:
            True if cleared successfully
        """
        success = self.delete_token()

        config = self._load_config()
        if self.profile in config["profiles"]:
            del config["profiles"][self.profile]
            if config["profiles"]:
                success = self._save_config(config) and success
            elif self.CONFIG_FILE.exists():
                self.CONFIG_FILE.unlink()

        return success

    @classmethod
    def list_profiles(cls) -> list[str]:
        """Profiles recorded in the config file."""
        if not cls.CONFIG_FILE.exists():
            return []
        try:
            with open(cls.CONFIG_FILE) as f:
                config = json.load(f)
        except (OSError, ValueError):
            return []
        profiles = config.get("profiles") if isinstance(config, dict) else None
        return sorted(profiles) if isinstance(profiles, dict) else []

    # ------------------------------------------------------------------
    # Config file
    # ------------------------------------------------------------------

    def _profile_config(self) -> dict:
        return self._load_config()["profiles"].get(self.profile, {})

    def _load_config(self) -> dict:
        """Load the config file, always returning a ``profiles`` mapping."""
        if not self.CONFIG_FILE.exists():
            return {"profiles": {}}

        try:
            with open(self.CONFIG_FILE) as f:
                config = json.load(f)
        except (OSError, ValueError):
            return {"profiles": {}}
        if not isinstance(config, dict):
            return {"profiles": {}}
        if not isinstance(config.get("profiles"), dict):
            config["profiles"] = {}
        return config

    def _save_config(self, config: dict) -> bool:
        try:
            self._ensure_config_dir()
            with open(self.CONFIG_FILE, "w") as f:
                json.dump(config, f, indent=2)
            os.chmod(self.CONFIG_FILE, 0o600)
            return True
        except OSError as e:
            warnings.warn(f"Failed to save config: {e}", UserWarning, stacklevel=2)
            return False

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _is_valid_token(token: str) -> bool:
        """Reject empty, sentinel, whitespace-bearing or serialized values."""
        if not token or not isinstance(token, str):
            return False

        token = token.strip()
        if not token or token.lower() in {"none", "null"}:
            return False
        if any(char.isspace() for char in token):
            return False
        if token.startswith("{") and token.endswith("}"):
            return False

        allowed_chars = set(string.ascii_letters + string.digits + "-_.~+/=:")
        return all(char in allowed_chars for char in token)

    def _retry_keychain_operation(
        self,
        operation: Any,
        max_retries: int = 3,
        return_value: bool = False,
        ignore_password_delete_error: bool = False,
    ) -> object:
        """
        Retry keychain operations to ride out transient backend failures.

        Returns:
            Operation result if return_value=True, otherwise success boolean
        """
        for attempt in range(max_retries):
            try:
                result = operation()
                return result if return_value else True
            except keyring.errors.PasswordDeleteError:
                if ignore_password_delete_error:
                    return True
                raise
            except keyring.errors.KeyringError:
                if attempt < max_retries - 1:
                    time.sleep(0.1 * (2**attempt))
                    continue
                break

        if return_value:
            return None
        return False

    @property
    def is_keyring_available(self) -> bool:
        """Whether a real keychain backend is configured."""
        return KEYRING_AVAILABLE
