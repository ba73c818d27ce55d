"""Microsoft identity platform provider (Entra ID, personal accounts)."""

import logging
from typing import Any

from clibridge.adapters.identity.base import OAuthIdentityProvider, split_name
from clibridge.core.auth.types import ProviderIdentity, ProviderName

logger = logging.getLogger(__name__)

GRAPH_ME_URL = "https://graph.microsoft.com/v1.0/me"


class MicrosoftIdentityProvider(OAuthIdentityProvider):
    """Microsoft v2.0 endpoints on the ``common`` tenant with a Graph profile."""

    name = ProviderName.MICROSOFT
    authorize_url = "https://login.microsoftonline.com/common/oauth2/v2.0/authorize"
    token_url = "https://login.microsoftonline.com/common/oauth2/v2.0/token"
    default_scopes = ["openid", "profile", "email", "User.Read"]

    def authorization_params(self, state: str, redirect_uri: str) -> dict[str, str]:
        params = super().authorization_params(state, redirect_uri)
        params["response_mode"] = "query"
        return params

    async def exchange_code(self, code: str, redirect_uri: str) -> ProviderIdentity:
        """Exchange a Microsoft authorization code for the user's identity."""
        async with self._client() as client:
            access_token = await self._request_token(client, redirect_uri, code)
            profile = await self._get_profile(client, GRAPH_ME_URL, access_token)

        return self.identity_from_profile(profile)

    def identity_from_profile(self, profile: dict[str, Any]) -> ProviderIdentity:
        """Normalize a Graph ``/me`` response.

        Work accounts often have no ``mail``; the UPN is the sign-in address then.
        """
        email = profile.get("mail") or profile.get("userPrincipalName")
        if not email:
            raise self._fail("profile has no email address")

        if profile.get("displayName"):
            first_name, last_name = split_name(profile["displayName"])
        else:
            first_name = profile.get("givenName") or ""
            last_name = profile.get("surname") or ""

        logger.debug("Resolved Microsoft identity for %s", email)
        return ProviderIdentity(email=email, first_name=first_name, last_name=last_name)
