"""Translate domain errors into HTTP responses."""

from typing import Any

from fastapi import HTTPException

from clibridge.core.exceptions import (
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

STATUS_CODES: dict[type[ClibridgeError], int] = {
    InvalidState: 400,
    ProviderExchangeFailed: 400,
    UnsupportedProvider: 400,
    InvalidOrExpiredSession: 401,
    ApiKeyLimitReached: 403,
    OrganizationAccessDenied: 403,
    ApiKeyNotFound: 404,
    ApplicationNotFound: 404,
    ApiKeyAlreadyLinked: 409,
    DuplicateKeyError: 409,
    AccountProvisioningConflict: 503,
}


def error_detail(error: ClibridgeError) -> dict[str, Any]:
    """Response body for a domain error: message, code and error-specific fields."""
    detail: dict[str, Any] = {"error": str(error), "code": error.code}

    if isinstance(error, ProviderExchangeFailed):
        detail["provider"] = error.provider
    elif isinstance(error, ApiKeyLimitReached):
        detail["limit"] = error.limit
        detail["plan"] = error.plan
        detail["upgradeUrl"] = error.upgrade_url
    elif isinstance(error, ApiKeyAlreadyLinked):
        detail["linkedApplicationId"] = str(error.linked_application_id)
        detail["linkedApplicationName"] = error.linked_application_name
        detail["suggestion"] = error.suggestion
    elif isinstance(error, AccountProvisioningConflict):
        detail["error"] = "Account setup is busy, please retry the login"

    return detail


def to_http_exception(error: ClibridgeError) -> HTTPException:
    """Map a domain error to an HTTPException with a structured detail."""
    status_code = STATUS_CODES.get(type(error), 500)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return HTTPException(status_code=status_code, detail=error_detail(error), headers=headers)
