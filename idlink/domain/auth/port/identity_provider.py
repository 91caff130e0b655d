"""Identity provider port for the auth domain."""

from abc import abstractmethod
from typing import Protocol

from idlink.domain.auth.model.profile import ProviderAssertion
from idlink.domain.shared.port import Port


class IdentityProvider(Port, Protocol):
    """Port for external identity provider integrations.

    Implementations are adapters in infrastructure/ (e.g., GithubIdentityProvider).
    Each one turns an OAuth handshake into a verified ProviderAssertion, so the
    resolution engine never depends on a particular handshake library.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique identifier for this provider (e.g., 'facebook')."""
        ...

    @property
    def supports_reauthorization(self) -> bool:
        """Whether the provider offers a re-authorization (re-request) flow."""
        return False

    @abstractmethod
    def get_authorization_url(
        self, state: str, redirect_uri: str, *, reauthorize: bool = False
    ) -> str:
        """Generate URL to redirect user for authentication.

        Args:
            state: CSRF protection token (the flow nonce)
            redirect_uri: Where the IdP should redirect after auth
            reauthorize: Request provider-specific re-authorization parameters

        Returns:
            Full URL to redirect the user to
        """
        ...

    @abstractmethod
    async def exchange_code(self, code: str, redirect_uri: str) -> ProviderAssertion:
        """Exchange authorization code for a verified profile and access token.

        Args:
            code: Authorization code from IdP callback
            redirect_uri: Must match the redirect_uri used in authorization URL

        Raises:
            ExternalServiceError: If the IdP request fails
        """
        ...
