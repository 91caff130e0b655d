"""Auth domain models."""

from .account import Account
from .auth_method import AuthMethod
from .outcome import ReauthorizationOutcome, ResolutionOutcome
from .profile import ExternalProfile, ProfileEmail, ProviderAssertion
from .value import AccountId, AuthMethodId, CurrentUser, ProviderIdentity

__all__ = [
    "Account",
    "AccountId",
    "AuthMethod",
    "AuthMethodId",
    "CurrentUser",
    "ExternalProfile",
    "ProfileEmail",
    "ProviderAssertion",
    "ProviderIdentity",
    "ReauthorizationOutcome",
    "ResolutionOutcome",
]
