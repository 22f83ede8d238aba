"""Secure credential storage using system keychain."""

import json
import logging
from dataclasses import dataclass
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

__all__ = ["KeychainManager", "Credentials"]

logger = logging.getLogger(__name__)

SERVICE_NAME = "CodeTrack Sync"
ACCOUNT_NAME = "github_credentials"


@dataclass(frozen=True)
class Credentials:
    """GitHub access token and the account it belongs to."""

    token: str
    username: str

    def to_json(self) -> str:
        return json.dumps({"token": self.token, "username": self.username})

    @classmethod
    def from_json(cls, data: str) -> "Credentials":
        parsed = json.loads(data)
        return cls(token=parsed["token"], username=parsed["username"])

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, token=***)"


class KeychainManager:
    """Manages secure credential storage."""

    def __init__(self, service_name: str = SERVICE_NAME):
        self.service_name = service_name

    def store(self, credentials: Credentials) -> bool:
        """Store credentials in keychain.

        Returns:
            True if stored successfully
        """
        try:
            keyring.set_password(self.service_name, ACCOUNT_NAME, credentials.to_json())
            logger.info(f"Credentials stored for {credentials.username}")
            return True
        except KeyringError as e:
            logger.error(f"Failed to store credentials: {e}")
            return False

    def load(self) -> Optional[Credentials]:
        """Load credentials from keychain.

        Returns:
            Credentials if found, None otherwise
        """
        try:
            data = keyring.get_password(self.service_name, ACCOUNT_NAME)
            if data:
                return Credentials.from_json(data)
            return None
        except KeyringError as e:
            logger.error(f"Failed to load credentials: {e}")
            return None
        except (ValueError, KeyError) as e:
            logger.error(f"Invalid credential format: {e}")
            return None

    def delete(self) -> bool:
        """Delete stored credentials.

        Returns:
            True if deleted (or didn't exist)
        """
        try:
            keyring.delete_password(self.service_name, ACCOUNT_NAME)
            logger.info("Credentials deleted")
            return True
        except PasswordDeleteError:
            return True
        except KeyringError as e:
            logger.error(f"Failed to delete credentials: {e}")
            return False
