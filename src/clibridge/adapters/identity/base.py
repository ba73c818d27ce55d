"""Shared plumbing for OAuth identity provider adapters."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx

from clibridge.core.auth.types import ProviderIdentity, ProviderName
from clibridge.core.exceptions import ProviderExchangeFailed

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


@dataclass
class ProviderConfig:
    """OAuth client registration at one provider."""

    client_id: str
    client_secret: str
    scopes: list[str] | None = None


def split_name(full_name: str | None) -> tuple[str, str]:
    """Split a display name on the first run of whitespace."""
    parts = (full_name or "").split(maxsplit=1)
    if not parts:
        return "", ""
    if len(parts) == 1:
        return parts[0], ""
    return parts[0], parts[1]


class OAuthIdentityProvider(ABC):
    """Authorization-code flow against a provider's token and profile endpoints.

    Subclasses set the endpoints and implement ``exchange_code``. Every
    failure mode, including transport errors, surfaces as
    ProviderExchangeFailed; nothing is retried since codes are single-use.
    """

    name: ProviderName
    authorize_url: str
    token_url: str
    default_scopes: list[str] = []

    def __init__(
        self,
        config: ProviderConfig,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            config: Client registration.
            timeout: Per-request timeout in seconds.
            transport: Custom httpx transport, used by tests.
        """
        self._config = config
        self._timeout = timeout
        self._transport = transport

    @property
    def scopes(self) -> list[str]:
        """Scopes requested at the authorize endpoint."""
        return self._config.scopes or self.default_scopes

    def authorization_params(self, state: str, redirect_uri: str) -> dict[str, str]:
        """Query parameters of the authorize URL."""
        return {
            "client_id": self._config.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "state": state,
        }

    def build_authorization_url(self, state: str, redirect_uri: str) -> str:
        """Generate authorization URL for user redirect.

        Args:
            state: State parameter for CSRF protection.
            redirect_uri: Registered callback URL.

        Returns:
            Authorization URL to redirect user to.
        """
        params = self.authorization_params(state, redirect_uri)
        return f"{self.authorize_url}?{urlencode(params)}"

    @abstractmethod
    async def exchange_code(self, code: str, redirect_uri: str) -> ProviderIdentity:
        """Exchange an authorization code for the user's normalized identity.

        Raises:
            ProviderExchangeFailed: The provider rejected the code or failed.
        """
        ...

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def _fail(self, message: str) -> ProviderExchangeFailed:
        logger.warning("%s exchange failed: %s", self.name.value, message)
        return ProviderExchangeFailed(self.name.value, message)

    async def _request_token(
        self,
        client: httpx.AsyncClient,
        redirect_uri: str,
        code: str,
        as_json: bool = False,
    ) -> str:
        """Exchange the code at the token endpoint and return the access token."""
        payload = {
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
            "code": code,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        }
        try:
            if as_json:
                response = await client.post(
                    self.token_url,
                    json=payload,
                    headers={"Accept": "application/json"},
                )
            else:
                response = await client.post(
                    self.token_url,
                    data=payload,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            raise self._fail(f"token request failed: {e.__class__.__name__}") from e

        data = self._json(response, "token exchange")
        if not isinstance(data, dict):
            raise self._fail("token exchange returned an unexpected payload")
        if "error" in data:
            description = data.get("error_description") or data["error"]
            raise self._fail(f"token exchange rejected: {description}")

        access_token = data.get("access_token")
        if not access_token:
            raise self._fail("no access token in token response")
        return str(access_token)

    async def _get_profile(
        self,
        client: httpx.AsyncClient,
        url: str,
        access_token: str,
        what: str = "profile",
        expected_type: type = dict,
    ) -> Any:
        """GET a bearer-authenticated JSON resource of the expected shape."""
        try:
            response = await client.get(
                url,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
            )
        except httpx.HTTPError as e:
            raise self._fail(f"{what} request failed: {e.__class__.__name__}") from e

        data = self._json(response, what)
        if not isinstance(data, expected_type):
            raise self._fail(f"{what} returned an unexpected payload")
        return data

    def _json(self, response: httpx.Response, what: str) -> Any:
        if not response.is_success:
            raise self._fail(f"{what} returned HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise self._fail(f"{what} returned invalid JSON") from e
