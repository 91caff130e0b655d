"""Provider registry implementation."""

from idlink.domain.auth.port.identity_provider import IdentityProvider
from idlink.domain.auth.port.provider_registry import ProviderRegistry
from idlink.domain.auth.port.token_exchange import TokenExchanger


class InMemoryProviderRegistry(ProviderRegistry):
    """In-memory provider registry.

    Stores a mapping of provider names to their implementations.
    Providers are registered at application startup via DI.
    """

    def __init__(
        self,
        providers: dict[str, IdentityProvider] | None = None,
        exchangers: dict[str, TokenExchanger] | None = None,
    ) -> None:
        self._providers: dict[str, IdentityProvider] = providers or {}
        self._exchangers: dict[str, TokenExchanger] = exchangers or {}

    def get(self, provider: str) -> IdentityProvider | None:
        return self._providers.get(provider)

    def get_exchanger(self, provider: str) -> TokenExchanger | None:
        return self._exchangers.get(provider)

    def available_providers(self) -> list[str]:
        return list(self._providers.keys())

    def register(
        self,
        name: str,
        provider: IdentityProvider,
        exchanger: TokenExchanger | None = None,
    ) -> None:
        """Register a provider, optionally with its token exchanger."""
        self._providers[name] = provider
        if exchanger is not None:
            self._exchangers[name] = exchanger
