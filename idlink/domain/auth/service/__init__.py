"""Auth domain services."""

from .credentials import CredentialsService
from .ledger import AuthMethodLedger
from .resolver import IdentityResolver
from .token import TokenService
from .username import UsernameGenerator, UsernameSignals

__all__ = [
    "AuthMethodLedger",
    "CredentialsService",
    "IdentityResolver",
    "TokenService",
    "UsernameGenerator",
    "UsernameSignals",
]
