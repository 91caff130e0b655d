"""Auth domain ports."""

from .identity_provider import IdentityProvider
from .password_hasher import PasswordHasher
from .provider_registry import ProviderRegistry
from .repository import AccountRepository, AuthMethodRepository
from .token_exchange import TokenExchanger

__all__ = [
    "AccountRepository",
    "AuthMethodRepository",
    "IdentityProvider",
    "PasswordHasher",
    "ProviderRegistry",
    "TokenExchanger",
]
