"""Core domain - login flow, sessions and API keys with no infrastructure code."""

from .exceptions import (
    AccountProvisioningConflict,
    ApiKeyAlreadyLinked,
    ApiKeyLimitReached,
    ApiKeyNotFound,
    ApplicationNotFound,
    ClibridgeError,
    DuplicateKeyError,
    InvalidOrExpiredSession,
    InvalidState,
    OrganizationAccessDenied,
    ProviderExchangeFailed,
    UnsupportedProvider,
)
from .interfaces import IdentityProviderAdapter, TaskScheduler, WelcomeNotifier

__all__ = [
    # Exceptions
    "ClibridgeError",
    "DuplicateKeyError",
    "InvalidState",
    "UnsupportedProvider",
    "ProviderExchangeFailed",
    "AccountProvisioningConflict",
    "InvalidOrExpiredSession",
    "OrganizationAccessDenied",
    "ApiKeyLimitReached",
    "ApiKeyNotFound",
    "ApplicationNotFound",
    "ApiKeyAlreadyLinked",
    # Interfaces
    "IdentityProviderAdapter",
    "TaskScheduler",
    "WelcomeNotifier",
]
