"""Domain-specific exceptions.

All exceptions in the clibridge system inherit from ClibridgeError,
making it easy to catch all system errors while still being able
to handle specific error types. Every error carries a machine-readable
``code`` that the HTTP layer passes through to the CLI unchanged.
"""

from __future__ import annotations

from uuid import UUID


class ClibridgeError(Exception):
    """Base exception for all clibridge errors."""

    code = "INTERNAL_ERROR"


class DuplicateKeyError(ClibridgeError):
    """A write was rejected by a unique constraint of the store.

    Raised by repositories, never by services. Services translate it into
    a retry (slug allocation, account creation) or a domain conflict
    (API key binding).

    Attributes:
        constraint: Name of the violated unique index.
    """

    code = "DUPLICATE_KEY"

    def __init__(self, constraint: str) -> None:
        """Initialize DuplicateKeyError.

        Args:
            constraint: Name of the violated unique index.
        """
        super().__init__(f"Unique constraint violated: {constraint}")
        self.constraint = constraint


class InvalidState(ClibridgeError):
    """Authorization state is unknown, expired or already consumed.

    This is always client-fatal. The CLI has to start a new login; the
    server never silently creates a replacement flow.
    """

    code = "INVALID_OR_EXPIRED_STATE"


class UnsupportedProvider(ClibridgeError):
    """The requested identity provider is not configured."""

    code = "UNSUPPORTED_PROVIDER"


class ProviderExchangeFailed(ClibridgeError):
    """Identity provider rejected the authorization code or failed.

    Covers bad codes, provider outages and mismatched redirect URIs.
    Never retried: the code is single-use at the provider.

    Attributes:
        provider: Provider name.
    """

    code = "PROVIDER_EXCHANGE_FAILED"

    def __init__(self, provider: str, message: str) -> None:
        """Initialize ProviderExchangeFailed.

        Args:
            provider: Provider name.
            message: Provider-facing error description, safe to show the user.
        """
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class AccountProvisioningConflict(ClibridgeError):
    """User creation collided with a concurrent writer and could not recover."""

    code = "ACCOUNT_PROVISIONING_CONFLICT"


class InvalidOrExpiredSession(ClibridgeError):
    """CLI session token is unknown, rotated, revoked or expired.

    The message is identical for every cause so callers cannot
    distinguish a token that never existed from one that expired.
    """

    code = "INVALID_SESSION"

    def __init__(self) -> None:
        """Initialize with the single public message."""
        super().__init__("Invalid or expired CLI session")


class OrganizationAccessDenied(ClibridgeError):
    """Caller is not an active member of the organization."""

    code = "UNAUTHORIZED"

    def __init__(self, organization_id: UUID) -> None:
        """Initialize OrganizationAccessDenied.

        Args:
            organization_id: Organization the caller tried to access.
        """
        super().__init__("Not authorized: you don't have access to this organization")
        self.organization_id = organization_id


class ApiKeyLimitReached(ClibridgeError):
    """Organization already holds as many active API keys as its plan allows.

    Attributes:
        limit: The plan's key limit.
        plan: Plan name the limit comes from.
    """

    code = "LIMIT_REACHED"
    upgrade_url = "/settings/billing"

    def __init__(self, limit: int, plan: str) -> None:
        """Initialize ApiKeyLimitReached.

        Args:
            limit: The plan's key limit.
            plan: Plan name the limit comes from.
        """
        super().__init__(
            f"You've reached the limit of {limit} API keys for the {plan} plan. "
            "Upgrade to create more keys."
        )
        self.limit = limit
        self.plan = plan


class ApiKeyNotFound(ClibridgeError):
    """API key does not exist, belongs to another organization or is revoked."""

    code = "API_KEY_NOT_FOUND"


class ApplicationNotFound(ClibridgeError):
    """Connected application does not exist or is archived."""

    code = "APPLICATION_NOT_FOUND"


class ApiKeyAlreadyLinked(ClibridgeError):
    """API key is already bound to another connected application.

    Attributes:
        api_key_id: The key that was being bound.
        linked_application_id: Application currently holding the key.
        linked_application_name: Display name of that application.
        suggestion: Remediation hint for the user.
    """

    code = "API_KEY_ALREADY_LINKED"
    suggestion = (
        "Each API key can only be connected to one application. Generate a new "
        "API key, or disconnect the existing application first."
    )

    def __init__(
        self,
        api_key_id: UUID,
        linked_application_id: UUID,
        linked_application_name: str,
    ) -> None:
        """Initialize ApiKeyAlreadyLinked.

        Args:
            api_key_id: The key that was being bound.
            linked_application_id: Application currently holding the key.
            linked_application_name: Display name of that application.
        """
        super().__init__(
            f"This API key is already connected to another application "
            f"({linked_application_name})"
        )
        self.api_key_id = api_key_id
        self.linked_application_id = linked_application_id
        self.linked_application_name = linked_application_name
