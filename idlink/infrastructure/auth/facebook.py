"""Facebook identity provider and long-lived token exchange."""

import hashlib
import hmac
import logging
from typing import Any

import httpx

from idlink.config import ProviderConfig
from idlink.domain.auth.model.profile import ExternalProfile, ProfileEmail
from idlink.domain.auth.port.token_exchange import TokenExchanger
from idlink.domain.shared.error import ExchangeFailedError, ExternalServiceError
from idlink.infrastructure.auth.oauth import OAuth2IdentityProvider

logger = logging.getLogger(__name__)

GRAPH_URL = "https://graph.facebook.com/v19.0"
PROFILE_FIELDS = "id,name,first_name,last_name,email"


def appsecret_proof(access_token: str, client_secret: str) -> str:
    """HMAC-SHA256 of the token keyed with the app secret, as Graph API expects."""
    return hmac.new(client_secret.encode(), access_token.encode(), hashlib.sha256).hexdigest()


class FacebookIdentityProvider(OAuth2IdentityProvider):
    """IdentityProvider implementation for Facebook Login.

    Supports re-authorization: `auth_type=rerequest` makes Facebook prompt
    again for permissions the user previously declined.
    """

    name = "facebook"
    default_scope = ["email", "public_profile", "user_friends"]
    scope_separator = ","
    reauthorize_params = {"auth_type": "rerequest"}
    authorize_url = "https://www.facebook.com/v19.0/dialog/oauth"
    token_url = f"{GRAPH_URL}/oauth/access_token"

    async def _request_token(self, code: str, redirect_uri: str) -> dict[str, Any]:
        params = {
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
            "code": code,
            "redirect_uri": redirect_uri,
        }
        return await self._call("GET", self.token_url, what="token exchange", params=params)

    async def _fetch_profile(self, access_token: str, token_data: dict[str, Any]) -> ExternalProfile:
        params = {
            "fields": PROFILE_FIELDS,
            "appsecret_proof": appsecret_proof(access_token, self._config.client_secret),
        }
        me = await self._get_json(f"{GRAPH_URL}/me", access_token, params=params)
        if not isinstance(me, dict) or not me.get("id"):
            raise ExternalServiceError("Facebook profile missing id", code="oauth_error")

        email = me.get("email")
        return ExternalProfile(
            provider_name=self.name,
            provider_id=str(me["id"]),
            display_name=me.get("name"),
            first_name=me.get("first_name"),
            last_name=me.get("last_name"),
            emails=(ProfileEmail(value=email),) if email else (),
            raw=me,
        )


class FacebookTokenExchanger(TokenExchanger):
    """Trades a short-lived user token for a long-lived one via `fb_exchange_token`."""

    def __init__(self, config: ProviderConfig, http_client: httpx.AsyncClient) -> None:
        self._config = config
        self._http = http_client

    @property
    def provider_name(self) -> str:
        return "facebook"

    async def upgrade(self, short_lived_token: str) -> str:
        params = {
            "grant_type": "fb_exchange_token",
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
            "fb_exchange_token": short_lived_token,
        }

        try:
            response = await self._http.get(f"{GRAPH_URL}/oauth/access_token", params=params)
        except httpx.RequestError as e:
            logger.warning("Facebook token exchange request failed: %s", e)
            raise ExchangeFailedError(
                "Failed to connect to Facebook", code="exchange_failed"
            ) from e

        if response.status_code != 200:
            logger.warning(
                "Facebook token exchange failed: status=%d, body=%s",
                response.status_code,
                response.text,
            )
            raise ExchangeFailedError(
                f"Facebook token exchange failed: {response.status_code}",
                code="exchange_failed",
            )

        try:
            token = response.json().get("access_token")
        except ValueError as e:
            raise ExchangeFailedError(
                "Facebook returned invalid JSON", code="exchange_failed"
            ) from e

        if not token:
            raise ExchangeFailedError(
                "Facebook token exchange returned no access_token", code="exchange_failed"
            )
        return token
