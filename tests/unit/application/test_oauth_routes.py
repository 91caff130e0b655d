"""Route tests for the OAuth popup flow, driven through the full app."""

import json
import re
from urllib.parse import parse_qs, urlencode, urlsplit

import pytest
from dishka import make_async_container, provide
from fastapi.testclient import TestClient

from idlink.application.api.rest.app import create_app
from idlink.config import Config
from idlink.domain.auth.model.profile import ExternalProfile, ProfileEmail, ProviderAssertion
from idlink.domain.auth.port.identity_provider import IdentityProvider
from idlink.domain.auth.port.provider_registry import ProviderRegistry
from idlink.domain.auth.port.token_exchange import TokenExchanger
from idlink.domain.auth.util.di import AuthProvider
from idlink.infrastructure.auth import AuthInfraProvider
from idlink.infrastructure.auth.provider_registry import InMemoryProviderRegistry
from idlink.infrastructure.persistence import PersistenceProvider
from idlink.util.di.base import Provider
from idlink.util.di.scope import Scope

ORIGIN = "https://app.example.com"
POST_MESSAGE = re.compile(r"window\.opener\.postMessage\((?P<payload>.*), (?P<origin>\"[^\"]*\")\);")


class StubIdentityProvider(IdentityProvider):
    """Provider whose handshake always yields `assertion`."""

    def __init__(self, name: str, assertion: ProviderAssertion, reauthorize: bool = False) -> None:
        self.name = name
        self.assertion = assertion
        self.reauthorize = reauthorize

    @property
    def provider_name(self) -> str:
        return self.name

    @property
    def supports_reauthorization(self) -> bool:
        return self.reauthorize

    def get_authorization_url(self, state, redirect_uri, *, reauthorize=False) -> str:
        params = {"state": state, "redirect_uri": redirect_uri, "rerequest": reauthorize}
        return f"https://{self.name}.test/authorize?{urlencode(params)}"

    async def exchange_code(self, code, redirect_uri) -> ProviderAssertion:
        return self.assertion


class StubTokenExchanger(TokenExchanger):
    @property
    def provider_name(self) -> str:
        return "facebook"

    async def upgrade(self, short_lived_token: str) -> str:
        return f"long-{short_lived_token}"


class StubRegistryProvider(Provider):
    def __init__(self, registry: ProviderRegistry) -> None:
        super().__init__()
        self._registry = registry

    @provide(scope=Scope.APP)
    def get_provider_registry(self) -> ProviderRegistry:
        return self._registry


def assertion(provider: str, provider_id: str, email: str | None, token: str = "short"):
    return ProviderAssertion(
        profile=ExternalProfile(
            provider_name=provider,
            provider_id=provider_id,
            display_name="Jane Doe",
            emails=(ProfileEmail(value=email),) if email else (),
        ),
        access_token=token,
    )


def popup_message(response) -> tuple[dict, str]:
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    match = POST_MESSAGE.search(response.text)
    assert match is not None
    return json.loads(match["payload"]), json.loads(match["origin"])


@pytest.fixture
def providers() -> dict[str, StubIdentityProvider]:
    return {
        "facebook": StubIdentityProvider(
            "facebook", assertion("facebook", "10001", "jane.doe@example.com"), reauthorize=True
        ),
        "github": StubIdentityProvider("github", assertion("github", "583231", "jane@work.example")),
    }


@pytest.fixture
def client(providers):
    config = Config(
        server={"host": "http://testserver"},
        database={"url": "sqlite+aiosqlite:///:memory:"},
        auth={
            "jwt": {"secret": "test-secret-for-route-tests-min-32"},
            "cookie_secure": False,
        },
    )
    registry = InMemoryProviderRegistry(providers, {"facebook": StubTokenExchanger()})
    container = make_async_container(
        PersistenceProvider(),
        AuthProvider(),
        AuthInfraProvider(),
        StubRegistryProvider(registry),
        context={Config: config},
        scopes=Scope,  # type: ignore[arg-type]
    )
    with TestClient(create_app(config, container)) as client:
        yield client


def start(client, provider: str, path: str = "", **params) -> str:
    """Open the start route and return the state sent to the provider."""
    response = client.get(f"/v2/oauth/{provider}{path}", params=params, follow_redirects=False)
    assert response.status_code == 302
    location = response.headers["location"]
    assert location.startswith(f"https://{provider}.test/authorize")
    return parse_qs(urlsplit(location).query)["state"][0]


def login(client, provider: str, **params) -> dict:
    state = start(client, provider, origin=ORIGIN, **params)
    response = client.get(f"/v2/oauth/{provider}/callback", params={"code": "c", "state": state})
    payload, origin = popup_message(response)
    assert origin == ORIGIN
    return payload


class TestLoginFlow:
    def test_start_redirects_with_callback_url(self, client):
        response = client.get(
            "/v2/oauth/facebook", params={"origin": ORIGIN}, follow_redirects=False
        )

        query = parse_qs(urlsplit(response.headers["location"]).query)
        assert query["redirect_uri"] == ["http://testserver/v2/oauth/facebook/callback"]
        assert "idlink_flow" in response.cookies

    def test_provisions_account_and_posts_token(self, client):
        payload = login(client, "facebook")

        assert set(payload) == {"authToken"}
        methods = client.get(
            "/v2/oauth/methods", headers={"Authorization": f"Bearer {payload['authToken']}"}
        )
        assert [m["provider_name"] for m in methods.json()["auth_methods"]] == ["facebook"]

    def test_repeat_login_resolves_same_account(self, client):
        first = login(client, "facebook")["authToken"]
        second = login(client, "facebook")["authToken"]

        me1 = client.get("/v2/oauth/methods", headers={"Authorization": f"Bearer {first}"}).json()
        me2 = client.get("/v2/oauth/methods", headers={"Authorization": f"Bearer {second}"}).json()
        assert me1 == me2

    def test_signed_in_user_links_provider(self, client):
        token = login(client, "facebook")["authToken"]

        payload = login(client, "github", auth_token=token)

        assert set(payload) == {"authMethods"}
        assert {m["provider_name"] for m in payload["authMethods"]} == {"facebook", "github"}

    def test_state_mismatch_posts_error_to_captured_origin(self, client):
        start(client, "facebook", origin=ORIGIN)

        response = client.get(
            "/v2/oauth/facebook/callback", params={"code": "c", "state": "forged"}
        )

        payload, origin = popup_message(response)
        assert payload == {"error": "Invalid state parameter"}
        assert origin == ORIGIN

    def test_missing_flow_cookie_uses_wildcard(self, client):
        response = client.get("/v2/oauth/facebook/callback", params={"code": "c", "state": "x"})

        payload, origin = popup_message(response)
        assert payload == {"error": "Invalid or expired login attempt"}
        assert origin == "*"

    def test_provider_denial(self, client):
        state = start(client, "facebook", origin=ORIGIN)

        response = client.get(
            "/v2/oauth/facebook/callback",
            params={"state": state, "error": "access_denied", "error_description": "User denied"},
        )

        payload, _ = popup_message(response)
        assert payload == {"error": "User denied"}

    def test_invalid_profile_is_reported(self, client, providers):
        providers["github"].assertion = assertion("github", "", None)

        payload = login(client, "github")

        assert payload == {"error": "Either id or email must be present"}

    def test_unknown_provider(self, client):
        response = client.get("/v2/oauth/myspace", params={"origin": ORIGIN})

        payload, origin = popup_message(response)
        assert payload == {"error": "Unknown identity provider: myspace"}
        assert origin == ORIGIN


class TestReauthorizationFlow:
    def test_refreshes_long_lived_token(self, client):
        token = login(client, "facebook")["authToken"]

        state = start(client, "facebook", "/authz", origin=ORIGIN, auth_token=token)
        response = client.get(
            "/v2/oauth/facebook/authz/callback", params={"code": "c", "state": state}
        )

        payload, origin = popup_message(response)
        assert payload == {"accessToken": "long-short"}
        assert origin == ORIGIN

    def test_different_identity_is_rejected(self, client, providers):
        token = login(client, "facebook")["authToken"]
        providers["facebook"].assertion = assertion("facebook", "99999", None)

        state = start(client, "facebook", "/authz", origin=ORIGIN, auth_token=token)
        response = client.get(
            "/v2/oauth/facebook/authz/callback", params={"code": "c", "state": state}
        )

        payload, _ = popup_message(response)
        assert payload == {"error": "You are authenticated as a different facebook user"}

    def test_requires_session(self, client):
        response = client.get("/v2/oauth/facebook/authz", params={"origin": ORIGIN})

        payload, _ = popup_message(response)
        assert payload == {"error": "Unauthorized"}

    def test_unsupported_provider(self, client):
        token = login(client, "facebook")["authToken"]

        response = client.get(
            "/v2/oauth/github/authz", params={"origin": ORIGIN, "auth_token": token}
        )

        payload, _ = popup_message(response)
        assert payload["error"] == "Re-authorization is not supported for github"

    def test_login_flow_cookie_cannot_complete_reauthorization(self, client):
        state = start(client, "facebook", origin=ORIGIN)

        response = client.get(
            "/v2/oauth/facebook/authz/callback", params={"code": "c", "state": state}
        )

        payload, _ = popup_message(response)
        assert payload == {"error": "Login attempt does not match this callback"}


class TestJsonRoutes:
    def test_methods_requires_token(self, client):
        response = client.get("/v2/oauth/methods")

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "missing_token"

    def test_password_login_unknown_user(self, client):
        response = client.post("/v2/session", json={"username": "ghost", "password": "pw"})

        assert response.status_code == 401
        assert response.json() == {
            "code": "unknown_login",
            "message": "We could not find the nickname you provided.",
        }

    def test_health(self, client):
        response = client.get("/v2/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert sorted(response.json()["providers"]) == ["facebook", "github"]
