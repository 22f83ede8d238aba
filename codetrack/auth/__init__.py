"""Auth module - credential resolution and secure storage."""

from .device_flow import AuthFlowResult, DeviceAuthFlow
from .keychain import Credentials, KeychainManager
from .resolver import CredentialResolver

__all__ = ["AuthFlowResult", "DeviceAuthFlow", "Credentials", "KeychainManager", "CredentialResolver"]
