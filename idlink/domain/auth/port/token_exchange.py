"""Token exchange port for the auth domain."""

from abc import abstractmethod
from typing import Protocol

from idlink.domain.shared.port import Port


class TokenExchanger(Port, Protocol):
    """Upgrades a short-lived provider token to a long-lived one.

    Token refresh is best-effort: callers fall back to the short-lived
    token when the upgrade fails.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str: ...

    @abstractmethod
    async def upgrade(self, short_lived_token: str) -> str:
        """Return a long-lived token.

        Raises:
            ExchangeFailedError: If the provider refused or could not be reached
        """
        ...
