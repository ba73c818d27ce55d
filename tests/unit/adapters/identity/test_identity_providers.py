"""Unit tests for the OAuth identity provider adapters."""

from __future__ import annotations

import json
from collections.abc import Callable
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from clibridge.adapters.identity import (
    GitHubIdentityProvider,
    GoogleIdentityProvider,
    MicrosoftIdentityProvider,
    OAuthIdentityProvider,
    ProviderConfig,
    build_identity_providers,
    split_name,
)
from clibridge.adapters.identity.github import select_email
from clibridge.core.auth.types import ProviderName
from clibridge.core.exceptions import ProviderExchangeFailed

REDIRECT_URI = "https://auth.example.com/api/auth/cli/callback"

Handler = Callable[[httpx.Request], httpx.Response]


def routes(table: dict[str, Handler | httpx.Response]) -> httpx.MockTransport:
    """Mock transport answering by URL without query string."""

    def handler(request: httpx.Request) -> httpx.Response:
        url = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        answer = table.get(url)
        if answer is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if callable(answer):
            return answer(request)
        return answer

    return httpx.MockTransport(handler)


@pytest.fixture
def config() -> ProviderConfig:
    """Return a client registration."""
    return ProviderConfig(client_id="client-123", client_secret="s3cret")


class TestSplitName:
    """Tests for split_name."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("Jane Doe", ("Jane", "Doe")),
            ("Jean  Claude Van Damme", ("Jean", "Claude Van Damme")),
            ("Cher", ("Cher", "")),
            ("", ("", "")),
            (None, ("", "")),
        ],
    )
    def test_split_name(self, name: str | None, expected: tuple[str, str]) -> None:
        """Test splitting on the first whitespace run."""
        assert split_name(name) == expected


class TestAuthorizationUrls:
    """Tests for authorize URLs."""

    def test_google_url(self, config: ProviderConfig) -> None:
        """Test Google authorize parameters."""
        url = GoogleIdentityProvider(config).build_authorization_url("st4te", REDIRECT_URI)

        assert url.startswith("https://accounts.google.com/o/oauth2/v2/auth?")
        params = parse_qs(urlsplit(url).query)
        assert params["client_id"] == ["client-123"]
        assert params["redirect_uri"] == [REDIRECT_URI]
        assert params["response_type"] == ["code"]
        assert params["scope"] == ["openid email profile"]
        assert params["state"] == ["st4te"]
        assert params["prompt"] == ["select_account"]

    def test_github_url(self, config: ProviderConfig) -> None:
        """Test GitHub authorize parameters."""
        url = GitHubIdentityProvider(config).build_authorization_url("st4te", REDIRECT_URI)

        params = parse_qs(urlsplit(url).query)
        assert url.startswith("https://github.com/login/oauth/authorize?")
        assert params["scope"] == ["read:user user:email"]
        assert params["allow_signup"] == ["false"]

    def test_microsoft_url(self, config: ProviderConfig) -> None:
        """Test Microsoft authorize parameters."""
        url = MicrosoftIdentityProvider(config).build_authorization_url("st4te", REDIRECT_URI)

        params = parse_qs(urlsplit(url).query)
        assert "/common/oauth2/v2.0/authorize" in url
        assert params["response_mode"] == ["query"]
        assert "User.Read" in params["scope"][0]

    def test_configured_scopes_override_defaults(self) -> None:
        """Test that explicit scopes replace the defaults."""
        provider = GoogleIdentityProvider(
            ProviderConfig(client_id="c", client_secret="s", scopes=["email"])
        )

        url = provider.build_authorization_url("x", REDIRECT_URI)

        assert parse_qs(urlsplit(url).query)["scope"] == ["email"]


class TestGoogle:
    """Tests for GoogleIdentityProvider."""

    async def test_exchange(self, config: ProviderConfig) -> None:
        """Test a successful code exchange."""
        seen: dict[str, str] = {}

        def token(request: httpx.Request) -> httpx.Response:
            form = parse_qs(request.content.decode())
            seen["code"] = form["code"][0]
            seen["redirect_uri"] = form["redirect_uri"][0]
            seen["grant_type"] = form["grant_type"][0]
            return httpx.Response(200, json={"access_token": "ya29.token"})

        def userinfo(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(
                200, json={"email": "jane@example.com", "name": "Jane Doe"}
            )

        transport = routes(
            {
                "https://oauth2.googleapis.com/token": token,
                "https://www.googleapis.com/oauth2/v2/userinfo": userinfo,
            }
        )
        provider = GoogleIdentityProvider(config, transport=transport)

        identity = await provider.exchange_code("auth-code", REDIRECT_URI)

        assert identity.email == "jane@example.com"
        assert (identity.first_name, identity.last_name) == ("Jane", "Doe")
        assert seen == {
            "code": "auth-code",
            "redirect_uri": REDIRECT_URI,
            "grant_type": "authorization_code",
            "auth": "Bearer ya29.token",
        }

    @pytest.mark.parametrize(
        ("profile", "expected"),
        [
            ({"name": "Ada King Lovelace"}, ("Ada", "King Lovelace")),
            ({"given_name": "Ada", "family_name": "Lovelace"}, ("Ada", "Lovelace")),
            ({"given_name": "Ada"}, ("Ada", "")),
            ({}, ("ada@example.com", "")),
        ],
    )
    def test_name_fallbacks(
        self,
        config: ProviderConfig,
        profile: dict[str, str],
        expected: tuple[str, str],
    ) -> None:
        """Test name resolution order."""
        identity = GoogleIdentityProvider(config).identity_from_profile(
            {"email": "ada@example.com", **profile}
        )

        assert (identity.first_name, identity.last_name) == expected

    def test_profile_without_email(self, config: ProviderConfig) -> None:
        """Test that a profile without an email is rejected."""
        with pytest.raises(ProviderExchangeFailed, match="no email"):
            GoogleIdentityProvider(config).identity_from_profile({"name": "Jane Doe"})

    async def test_token_error_field(self, config: ProviderConfig) -> None:
        """Test that an error payload is a rejected exchange."""
        transport = routes(
            {
                "https://oauth2.googleapis.com/token": httpx.Response(
                    400, json={"error": "invalid_grant"}
                ),
            }
        )

        with pytest.raises(ProviderExchangeFailed) as exc_info:
            await GoogleIdentityProvider(config, transport=transport).exchange_code(
                "used-code", REDIRECT_URI
            )

        assert exc_info.value.provider == "google"

    async def test_transport_error(self, config: ProviderConfig) -> None:
        """Test that network failures become exchange failures."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        provider = GoogleIdentityProvider(config, transport=httpx.MockTransport(handler))

        with pytest.raises(ProviderExchangeFailed, match="ConnectTimeout"):
            await provider.exchange_code("code", REDIRECT_URI)

    async def test_profile_http_error(self, config: ProviderConfig) -> None:
        """Test that a failing userinfo call is an exchange failure."""
        transport = routes(
            {
                "https://oauth2.googleapis.com/token": httpx.Response(
                    200, json={"access_token": "t"}
                ),
                "https://www.googleapis.com/oauth2/v2/userinfo": httpx.Response(500),
            }
        )

        with pytest.raises(ProviderExchangeFailed, match="HTTP 500"):
            await GoogleIdentityProvider(config, transport=transport).exchange_code(
                "code", REDIRECT_URI
            )

    async def test_missing_access_token(self, config: ProviderConfig) -> None:
        """Test that a token response without a token is rejected."""
        transport = routes(
            {"https://oauth2.googleapis.com/token": httpx.Response(200, json={})}
        )

        with pytest.raises(ProviderExchangeFailed, match="no access token"):
            await GoogleIdentityProvider(config, transport=transport).exchange_code(
                "code", REDIRECT_URI
            )

    async def test_invalid_json(self, config: ProviderConfig) -> None:
        """Test that a non-JSON token response is rejected."""
        transport = routes(
            {"https://oauth2.googleapis.com/token": httpx.Response(200, text="<html>")}
        )

        with pytest.raises(ProviderExchangeFailed, match="invalid JSON"):
            await GoogleIdentityProvider(config, transport=transport).exchange_code(
                "code", REDIRECT_URI
            )


class TestMicrosoft:
    """Tests for MicrosoftIdentityProvider."""

    async def test_exchange(self, config: ProviderConfig) -> None:
        """Test a successful code exchange against Graph."""
        transport = routes(
            {
                "https://login.microsoftonline.com/common/oauth2/v2.0/token": httpx.Response(
                    200, json={"access_token": "eyJ0"}
                ),
                "https://graph.microsoft.com/v1.0/me": httpx.Response(
                    200, json={"mail": "sam@contoso.com", "displayName": "Sam Lee"}
                ),
            }
        )

        identity = await MicrosoftIdentityProvider(config, transport=transport).exchange_code(
            "code", REDIRECT_URI
        )

        assert identity.email == "sam@contoso.com"
        assert identity.display_name == "Sam Lee"

    def test_upn_when_mail_missing(self, config: ProviderConfig) -> None:
        """Test that the UPN stands in for a missing mail attribute."""
        identity = MicrosoftIdentityProvider(config).identity_from_profile(
            {"mail": None, "userPrincipalName": "sam@contoso.com", "givenName": "Sam"}
        )

        assert identity.email == "sam@contoso.com"
        assert (identity.first_name, identity.last_name) == ("Sam", "")

    def test_structured_names(self, config: ProviderConfig) -> None:
        """Test given name and surname without a display name."""
        identity = MicrosoftIdentityProvider(config).identity_from_profile(
            {"mail": "sam@contoso.com", "givenName": "Sam", "surname": "Lee"}
        )

        assert (identity.first_name, identity.last_name) == ("Sam", "Lee")

    def test_no_address(self, config: ProviderConfig) -> None:
        """Test that a profile without any address is rejected."""
        with pytest.raises(ProviderExchangeFailed):
            MicrosoftIdentityProvider(config).identity_from_profile({"displayName": "Sam"})


class TestGitHub:
    """Tests for GitHubIdentityProvider."""

    TOKEN_URL = "https://github.com/login/oauth/access_token"
    USER_URL = "https://api.github.com/user"
    EMAILS_URL = "https://api.github.com/user/emails"

    def token_ok(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert request.headers["Accept"] == "application/json"
        assert body["client_secret"] == "s3cret"
        return httpx.Response(200, json={"access_token": "gho_abc", "token_type": "bearer"})

    async def test_public_email(self, config: ProviderConfig) -> None:
        """Test a profile that exposes its email."""
        transport = routes(
            {
                self.TOKEN_URL: self.token_ok,
                self.USER_URL: httpx.Response(
                    200,
                    json={"login": "octocat", "name": "Mona Lisa", "email": "mona@example.com"},
                ),
            }
        )

        identity = await GitHubIdentityProvider(config, transport=transport).exchange_code(
            "code", REDIRECT_URI
        )

        assert identity.email == "mona@example.com"
        assert (identity.first_name, identity.last_name) == ("Mona", "Lisa")

    async def test_hidden_email_uses_emails_endpoint(self, config: ProviderConfig) -> None:
        """Test that a private email is fetched from /user/emails."""
        transport = routes(
            {
                self.TOKEN_URL: self.token_ok,
                self.USER_URL: httpx.Response(200, json={"login": "octocat", "email": None}),
                self.EMAILS_URL: httpx.Response(
                    200,
                    json=[
                        {"email": "old@example.com", "primary": False, "verified": True},
                        {"email": "main@example.com", "primary": True, "verified": True},
                    ],
                ),
            }
        )

        identity = await GitHubIdentityProvider(config, transport=transport).exchange_code(
            "code", REDIRECT_URI
        )

        assert identity.email == "main@example.com"
        assert identity.first_name == "octocat"

    async def test_login_address_fallback(self, config: ProviderConfig) -> None:
        """Test that a failed email lookup falls back to the login address."""
        transport = routes(
            {
                self.TOKEN_URL: self.token_ok,
                self.USER_URL: httpx.Response(200, json={"login": "octocat"}),
                self.EMAILS_URL: httpx.Response(403, json={"message": "scope"}),
            }
        )

        identity = await GitHubIdentityProvider(config, transport=transport).exchange_code(
            "code", REDIRECT_URI
        )

        assert identity.email == "octocat@github.com"

    async def test_bad_code_with_http_200(self, config: ProviderConfig) -> None:
        """Test that GitHub's 200-with-error answer is a rejection."""
        transport = routes(
            {
                self.TOKEN_URL: httpx.Response(
                    200,
                    json={
                        "error": "bad_verification_code",
                        "error_description": "The code passed is incorrect or expired.",
                    },
                ),
            }
        )

        with pytest.raises(ProviderExchangeFailed, match="incorrect or expired"):
            await GitHubIdentityProvider(config, transport=transport).exchange_code(
                "stale", REDIRECT_URI
            )

    async def test_no_email_no_login(self, config: ProviderConfig) -> None:
        """Test that an anonymous profile cannot be resolved."""
        transport = routes(
            {
                self.TOKEN_URL: self.token_ok,
                self.USER_URL: httpx.Response(200, json={"id": 1}),
                self.EMAILS_URL: httpx.Response(200, json=[]),
            }
        )

        with pytest.raises(ProviderExchangeFailed, match="neither email nor login"):
            await GitHubIdentityProvider(config, transport=transport).exchange_code(
                "code", REDIRECT_URI
            )

    @pytest.mark.parametrize(
        ("emails", "expected"),
        [
            (
                [
                    {"email": "a@x.com", "primary": False, "verified": True},
                    {"email": "b@x.com", "primary": True, "verified": False},
                ],
                "b@x.com",
            ),
            (
                [
                    {"email": "a@x.com", "primary": False, "verified": False},
                    {"email": "b@x.com", "primary": False, "verified": True},
                ],
                "b@x.com",
            ),
            ([{"email": "only@x.com"}], "only@x.com"),
            ([{"primary": True}, "junk"], None),
            ([], None),
        ],
    )
    def test_select_email(self, emails: list, expected: str | None) -> None:
        """Test email preference order."""
        assert select_email(emails) == expected


class TestBuildIdentityProviders:
    """Tests for build_identity_providers."""

    def test_skips_incomplete_registrations(self) -> None:
        """Test that providers without id and secret are left out."""
        providers = build_identity_providers(
            {
                ProviderName.GOOGLE: ProviderConfig(client_id="g", client_secret="gs"),
                ProviderName.MICROSOFT: ProviderConfig(client_id="m", client_secret=""),
                ProviderName.GITHUB: ProviderConfig(client_id="", client_secret="hs"),
            }
        )

        assert list(providers) == [ProviderName.GOOGLE]
        assert isinstance(providers[ProviderName.GOOGLE], GoogleIdentityProvider)

    def test_builds_all(self) -> None:
        """Test that every complete registration gets its adapter class."""
        providers = build_identity_providers(
            {name: ProviderConfig(client_id="c", client_secret="s") for name in ProviderName}
        )

        assert isinstance(providers[ProviderName.MICROSOFT], MicrosoftIdentityProvider)
        assert isinstance(providers[ProviderName.GITHUB], GitHubIdentityProvider)


class TestOAuthIdentityProvider:
    """Tests for the shared provider base."""

    def test_base_cannot_be_instantiated(self, config: ProviderConfig) -> None:
        """Test that a provider must implement exchange_code."""
        with pytest.raises(TypeError, match="exchange_code"):
            OAuthIdentityProvider(config)

    def test_subclass_without_exchange_is_abstract(self, config: ProviderConfig) -> None:
        """Test that forgetting exchange_code fails at construction."""

        class HalfProvider(OAuthIdentityProvider):
            name = ProviderName.GOOGLE
            authorize_url = "https://idp.example/authorize"
            token_url = "https://idp.example/token"

        with pytest.raises(TypeError):
            HalfProvider(config)
