"""Outcomes produced by the identity resolver."""

from dataclasses import dataclass

from idlink.domain.auth.model.account import Account
from idlink.domain.auth.model.auth_method import AuthMethod


@dataclass(frozen=True)
class ResolutionOutcome:
    """Which account an external identity assertion resolved to.

    `linked` is True when an existing account (the session account, or one
    found by provider id or email) was used, False when a new account was
    provisioned.
    """

    account: Account
    linked: bool
    auth_method: AuthMethod

    @property
    def provisioned(self) -> bool:
        return not self.linked


@dataclass(frozen=True)
class ReauthorizationOutcome:
    """Token cached after re-proving ownership of a linked provider identity."""

    access_token: str
    upgraded: bool
    error: str | None = None
