"""GitHub OAuth app provider."""

import logging
from typing import Any

import httpx

from clibridge.adapters.identity.base import OAuthIdentityProvider, split_name
from clibridge.core.auth.types import ProviderIdentity, ProviderName
from clibridge.core.exceptions import ProviderExchangeFailed

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.github.com"


def select_email(emails: list[dict[str, Any]]) -> str | None:
    """Pick an address from ``/user/emails``.

    Order of preference: primary and verified, primary, verified, any.
    """
    ranked = sorted(
        (entry for entry in emails if isinstance(entry, dict) and entry.get("email")),
        key=lambda entry: (not entry.get("primary"), not entry.get("verified")),
    )
    if not ranked:
        return None
    return str(ranked[0]["email"])


class GitHubIdentityProvider(OAuthIdentityProvider):
    """GitHub OAuth. Email may need a second call when the profile hides it."""

    name = ProviderName.GITHUB
    authorize_url = "https://github.com/login/oauth/authorize"
    token_url = "https://github.com/login/oauth/access_token"
    default_scopes = ["read:user", "user:email"]

    def authorization_params(self, state: str, redirect_uri: str) -> dict[str, str]:
        params = super().authorization_params(state, redirect_uri)
        params["allow_signup"] = "false"
        return params

    async def exchange_code(self, code: str, redirect_uri: str) -> ProviderIdentity:
        """Exchange a GitHub authorization code for the user's identity.

        GitHub answers a bad code with HTTP 200 and an ``error`` field, which
        is handled like any other rejection.
        """
        async with self._client() as client:
            access_token = await self._request_token(client, redirect_uri, code, as_json=True)
            profile = await self._get_profile(client, f"{API_BASE_URL}/user", access_token)

            login = profile.get("login") or ""
            email = profile.get("email")
            if not email:
                email = await self._lookup_email(client, access_token)
            if not email:
                if not login:
                    raise self._fail("profile has neither email nor login")
                email = f"{login}@github.com"

        first_name, last_name = split_name(profile.get("name") or login)
        logger.debug("Resolved GitHub identity for %s", login)
        return ProviderIdentity(email=email, first_name=first_name, last_name=last_name)

    async def _lookup_email(self, client: httpx.AsyncClient, access_token: str) -> str | None:
        """Best-effort lookup of a hidden email; failures fall back to the login."""
        try:
            emails = await self._get_profile(
                client,
                f"{API_BASE_URL}/user/emails",
                access_token,
                what="email lookup",
                expected_type=list,
            )
        except ProviderExchangeFailed:
            logger.info("GitHub email lookup failed, using login address")
            return None

        return select_email(emails)
