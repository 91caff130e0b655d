"""Shared OAuth2 authorization-code adapter."""

import logging
from abc import abstractmethod
from typing import Any, ClassVar
from urllib.parse import urlencode

import httpx

from idlink.config import ProviderConfig
from idlink.domain.auth.model.profile import ExternalProfile, ProviderAssertion
from idlink.domain.auth.port.identity_provider import IdentityProvider
from idlink.domain.shared.error import ExternalServiceError

logger = logging.getLogger(__name__)


class OAuth2IdentityProvider(IdentityProvider):
    """Authorization-code flow against a provider's authorize and token endpoints.

    Subclasses name the endpoints and map the provider's user data to an
    ExternalProfile.
    """

    name: ClassVar[str]
    default_scope: ClassVar[list[str]] = []
    scope_separator: ClassVar[str] = " "
    reauthorize_params: ClassVar[dict[str, str]] = {}

    def __init__(self, config: ProviderConfig, http_client: httpx.AsyncClient) -> None:
        self._config = config
        self._http = http_client

    @property
    def provider_name(self) -> str:
        return self.name

    @property
    def supports_reauthorization(self) -> bool:
        return bool(self.reauthorize_params)

    @property
    @abstractmethod
    def authorize_url(self) -> str: ...

    @property
    @abstractmethod
    def token_url(self) -> str: ...

    @property
    def scope(self) -> list[str]:
        return self._config.scope if self._config.scope is not None else self.default_scope

    def get_authorization_url(
        self, state: str, redirect_uri: str, *, reauthorize: bool = False
    ) -> str:
        params = {
            "client_id": self._config.client_id,
            "response_type": "code",
            "scope": self.scope_separator.join(self.scope),
            "redirect_uri": redirect_uri,
            "state": state,
        }
        if reauthorize:
            params.update(self.reauthorize_params)
        return f"{self.authorize_url}?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: str) -> ProviderAssertion:
        token_data = await self._request_token(code, redirect_uri)

        access_token = token_data.get("access_token")
        if not access_token:
            raise ExternalServiceError(
                f"{self.name} token response missing access_token",
                code="oauth_error",
            )

        profile = await self._fetch_profile(access_token, token_data)
        return ProviderAssertion(profile=profile, access_token=access_token)

    @abstractmethod
    async def _fetch_profile(self, access_token: str, token_data: dict[str, Any]) -> ExternalProfile:
        """Build the verified profile for the token holder."""
        ...

    async def _request_token(self, code: str, redirect_uri: str) -> dict[str, Any]:
        data = {
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
        }
        return await self._call(
            "POST",
            self.token_url,
            what="token exchange",
            data=data,
            headers={"Accept": "application/json"},
        )

    async def _get_json(
        self,
        url: str,
        access_token: str | None = None,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        request_headers = {"Accept": "application/json", **(headers or {})}
        if access_token:
            request_headers["Authorization"] = f"Bearer {access_token}"
        return await self._call(
            "GET", url, what="profile request", params=params, headers=request_headers
        )

    async def _call(self, method: str, url: str, *, what: str, **kwargs: Any) -> Any:
        try:
            response = await self._http.request(method, url, **kwargs)

            if response.status_code != 200:
                logger.error(
                    "%s %s failed: status=%d, body=%s",
                    self.name,
                    what,
                    response.status_code,
                    response.text,
                )
                raise ExternalServiceError(
                    f"{self.name} {what} failed: {response.status_code}",
                    code="idp_unavailable",
                )

            return response.json()

        except httpx.RequestError as e:
            logger.exception("%s request failed: %s", self.name, e)
            raise ExternalServiceError(
                f"Failed to connect to {self.name}",
                code="idp_unavailable",
            ) from e
        except ValueError as e:
            raise ExternalServiceError(
                f"{self.name} returned invalid JSON",
                code="oauth_error",
            ) from e
