"""
Storage for the operations gateway bearer token.

Tokens go to the OS keyring when a backend is available and fall back to a
plaintext file (mode 0600) otherwise.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

logger = logging.getLogger(__name__)

KEYRING_SERVICE_NAME = "opscalendar"


class TokenStore:
    """
    Persists one access token per gateway URL.
    """

    def __init__(self, base_url: str, token_file: Path | None = None):
        """
        Args:
            base_url: Gateway the token belongs to (used as keyring user name)
            token_file: Fallback file, defaults to ~/.opscalendar_token
        """
        self.base_url = base_url
        self.token_file = token_file or Path.home() / ".opscalendar_token"
        self._backend = "keyring"
        self._insecure_storage_warning: Optional[str] = None

    @property
    def backend(self) -> str:
        """Return the active storage backend (keyring or file)."""
        return self._backend

    @property
    def insecure_storage_warning(self) -> Optional[str]:
        """Provide a warning message when tokens fall back to plaintext storage."""
        return self._insecure_storage_warning

    def load(self) -> Optional[str]:
        token = self._load_from_keyring()
        if token is None:
            token = self._load_from_file()
        return token

    def save(self, token: str) -> None:
        if self._backend == "keyring" and self._save_to_keyring(token):
            return
        self._save_to_file(token)

    def clear(self) -> None:
        """Remove the token from both backends."""
        if self.token_file.exists():
            self.token_file.unlink()
        try:
            keyring.delete_password(KEYRING_SERVICE_NAME, self.base_url)
        except PasswordDeleteError:
            pass
        except KeyringError as exc:  # pragma: no cover - environment dependent
            logger.warning("Could not remove token from keyring: %s", exc)

    def _load_from_keyring(self) -> Optional[str]:
        if self._backend != "keyring":
            return None
        try:
            return keyring.get_password(KEYRING_SERVICE_NAME, self.base_url)
        except KeyringError as exc:  # pragma: no cover - environment dependent
            self._handle_keyring_failure(f"reading credentials failed: {exc}")
            return None

    def _load_from_file(self) -> Optional[str]:
        if self.token_file.exists():
            try:
                with open(self.token_file, "r", encoding="utf-8") as file_handle:
                    return file_handle.read().strip() or None
            except OSError as exc:
                logger.warning("Could not read token file %s: %s", self.token_file, exc)
        return None

    def _save_to_keyring(self, token: str) -> bool:
        try:
            keyring.set_password(KEYRING_SERVICE_NAME, self.base_url, token)
            return True
        except KeyringError as exc:  # pragma: no cover - environment dependent
            self._handle_keyring_failure(f"writing credentials failed: {exc}")
            return False

    def _save_to_file(self, token: str) -> None:
        try:
            self.token_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.token_file, "w", encoding="utf-8") as file_handle:
                file_handle.write(token)
            self.token_file.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not save token to %s: %s", self.token_file, exc)

    def _handle_keyring_failure(self, reason: str) -> None:
        logger.warning(
            "Secure credential storage unavailable (%s). Falling back to plaintext file.",
            reason,
        )
        self._backend = "file"
        if not self._insecure_storage_warning:
            self._insecure_storage_warning = (
                f"Secure credential storage unavailable ({reason}). "
                f"Falling back to plaintext file at {self.token_file}."
            )
