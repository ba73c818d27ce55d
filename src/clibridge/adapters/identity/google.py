"""Google identity provider."""

import logging
from typing import Any

from clibridge.adapters.identity.base import OAuthIdentityProvider, split_name
from clibridge.core.auth.types import ProviderIdentity, ProviderName

logger = logging.getLogger(__name__)

USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


class GoogleIdentityProvider(OAuthIdentityProvider):
    """Google OAuth 2.0 with the v2 userinfo endpoint."""

    name = ProviderName.GOOGLE
    authorize_url = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url = "https://oauth2.googleapis.com/token"
    default_scopes = ["openid", "email", "profile"]

    def authorization_params(self, state: str, redirect_uri: str) -> dict[str, str]:
        params = super().authorization_params(state, redirect_uri)
        params["access_type"] = "online"
        params["prompt"] = "select_account"
        return params

    async def exchange_code(self, code: str, redirect_uri: str) -> ProviderIdentity:
        """Exchange a Google authorization code for the user's identity."""
        async with self._client() as client:
            access_token = await self._request_token(client, redirect_uri, code)
            profile = await self._get_profile(client, USERINFO_URL, access_token)

        return self.identity_from_profile(profile)

    def identity_from_profile(self, profile: dict[str, Any]) -> ProviderIdentity:
        """Normalize a userinfo response.

        The display name is split on its first space. Without one, the
        structured given/family names are used, and the email as a last resort.
        """
        email = profile.get("email")
        if not email:
            raise self._fail("profile has no email address")

        if profile.get("name"):
            first_name, last_name = split_name(profile["name"])
        elif profile.get("given_name") or profile.get("family_name"):
            first_name = profile.get("given_name") or ""
            last_name = profile.get("family_name") or ""
        else:
            first_name, last_name = split_name(email)

        logger.debug("Resolved Google identity for %s", email)
        return ProviderIdentity(email=email, first_name=first_name, last_name=last_name)
