"""Provider registry port for the auth domain."""

from abc import abstractmethod
from typing import Protocol

from idlink.domain.auth.port.identity_provider import IdentityProvider
from idlink.domain.auth.port.token_exchange import TokenExchanger
from idlink.domain.shared.port import Port


class ProviderRegistry(Port, Protocol):
    """Registry of configured identity providers and their token exchangers."""

    @abstractmethod
    def get(self, provider: str) -> IdentityProvider | None:
        """Get an identity provider by name, or None if not configured."""
        ...

    @abstractmethod
    def get_exchanger(self, provider: str) -> TokenExchanger | None:
        """Get the token exchanger for a provider, or None if it has none."""
        ...

    @abstractmethod
    def available_providers(self) -> list[str]:
        """Get list of configured provider names."""
        ...

    def is_available(self, provider: str) -> bool:
        return provider in self.available_providers()
