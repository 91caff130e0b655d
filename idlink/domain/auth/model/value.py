"""Value objects for the auth domain."""

from dataclasses import dataclass
from uuid import UUID, uuid4

from pydantic import RootModel


class AccountId(RootModel[UUID]):
    """Unique, stable identifier for an Account."""

    @classmethod
    def generate(cls) -> "AccountId":
        return cls(uuid4())

    def __str__(self) -> str:
        return str(self.root)

    def __hash__(self) -> int:
        return hash(self.root)


class AuthMethodId(RootModel[UUID]):
    """Unique identifier for an AuthMethod."""

    @classmethod
    def generate(cls) -> "AuthMethodId":
        return cls(uuid4())

    def __str__(self) -> str:
        return str(self.root)

    def __hash__(self) -> int:
        return hash(self.root)


@dataclass(frozen=True)
class ProviderIdentity:
    """A user's identity within one provider.

    Encapsulates provider_name + provider_id together since they're always used as a pair.
    """

    provider_name: str  # e.g., "facebook", "github"
    provider_id: str  # Provider-specific user ID


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated account context extracted from a session JWT."""

    account_id: AccountId
    username: str
