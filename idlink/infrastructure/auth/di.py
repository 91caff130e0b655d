"""DI provider for auth infrastructure."""

import logging
from collections.abc import AsyncIterable

import httpx
from dishka import provide

from idlink.config import Config
from idlink.domain.auth.port.identity_provider import IdentityProvider
from idlink.domain.auth.port.password_hasher import PasswordHasher
from idlink.domain.auth.port.provider_registry import ProviderRegistry
from idlink.domain.auth.port.token_exchange import TokenExchanger
from idlink.infrastructure.auth.facebook import FacebookIdentityProvider, FacebookTokenExchanger
from idlink.infrastructure.auth.github import GithubIdentityProvider
from idlink.infrastructure.auth.google import GoogleIdentityProvider
from idlink.infrastructure.auth.oauth import OAuth2IdentityProvider
from idlink.infrastructure.auth.orcid import OrcidIdentityProvider
from idlink.infrastructure.auth.password import Argon2PasswordHasher
from idlink.infrastructure.auth.provider_registry import InMemoryProviderRegistry
from idlink.util.di.base import Provider
from idlink.util.di.scope import Scope

logger = logging.getLogger(__name__)

# HTTP client timeout configuration
_HTTP_TIMEOUT = httpx.Timeout(
    connect=5.0,  # Connection timeout
    read=10.0,  # Read timeout
    write=5.0,  # Write timeout
    pool=5.0,  # Pool timeout
)

PROVIDER_ADAPTERS: dict[str, type[OAuth2IdentityProvider]] = {
    "facebook": FacebookIdentityProvider,
    "github": GithubIdentityProvider,
    "google": GoogleIdentityProvider,
    "orcid": OrcidIdentityProvider,
}


class AuthInfraProvider(Provider):
    """DI provider for auth infrastructure adapters."""

    password_hasher = provide(
        Argon2PasswordHasher,
        scope=Scope.APP,
        provides=PasswordHasher,
    )

    @provide(scope=Scope.APP)
    async def get_auth_http_client(self) -> AsyncIterable[httpx.AsyncClient]:
        """Shared HTTP client for auth operations (connection pooling)."""
        async with httpx.AsyncClient(timeout=_HTTP_TIMEOUT) as client:
            yield client

    @provide(scope=Scope.APP)
    def get_provider_registry(
        self, config: Config, http_client: httpx.AsyncClient
    ) -> ProviderRegistry:
        """Provide ProviderRegistry with every configured identity provider."""
        return build_provider_registry(config, http_client)


def build_provider_registry(
    config: Config, http_client: httpx.AsyncClient
) -> InMemoryProviderRegistry:
    """Instantiate an adapter for each enabled provider in the config."""
    providers: dict[str, IdentityProvider] = {}
    exchangers: dict[str, TokenExchanger] = {}

    for name, provider_config in config.auth.enabled_providers().items():
        adapter = PROVIDER_ADAPTERS.get(name)
        if adapter is None:
            logger.warning("Ignoring unknown identity provider in config: %s", name)
            continue
        providers[name] = adapter(config=provider_config, http_client=http_client)

    facebook = config.auth.providers.get("facebook")
    if facebook is not None and facebook.enabled:
        exchangers["facebook"] = FacebookTokenExchanger(config=facebook, http_client=http_client)

    return InMemoryProviderRegistry(providers, exchangers)
