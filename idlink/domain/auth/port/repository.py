"""Repository ports for the auth domain."""

from abc import abstractmethod
from typing import Protocol

from idlink.domain.auth.model.account import Account
from idlink.domain.auth.model.auth_method import AuthMethod
from idlink.domain.auth.model.value import AccountId
from idlink.domain.shared.port import Port


class AccountRepository(Port, Protocol):
    """Repository for Account aggregate persistence (the Account Store)."""

    @abstractmethod
    async def get(self, account_id: AccountId) -> Account | None:
        """Get an account by ID."""
        ...

    @abstractmethod
    async def get_by_username(self, username: str) -> Account | None:
        """Get an account by username (case-insensitive)."""
        ...

    @abstractmethod
    async def get_by_email(self, email: str) -> Account | None:
        """Get an account by email (case-insensitive)."""
        ...

    @abstractmethod
    async def get_by_provider_identity(
        self, provider_name: str, provider_id: str
    ) -> Account | None:
        """Get the account holding an AuthMethod for the given provider identity."""
        ...

    @abstractmethod
    async def username_exists(self, username: str) -> bool:
        """Check whether a username claim exists (case-insensitive)."""
        ...

    @abstractmethod
    async def create(self, account: Account) -> None:
        """Create an account together with its username claim.

        The account row and the claim commit together or not at all.

        Raises:
            UsernameTakenError: If the username was claimed concurrently
        """
        ...


class AuthMethodRepository(Port, Protocol):
    """Repository for AuthMethod persistence (the Auth-Method Ledger storage)."""

    @abstractmethod
    async def get(self, account_id: AccountId, provider_name: str) -> AuthMethod | None:
        """Get the AuthMethod an account holds for a provider."""
        ...

    @abstractmethod
    async def get_by_provider_identity(
        self, provider_name: str, provider_id: str
    ) -> AuthMethod | None:
        """Get the AuthMethod for a provider identity, whichever account holds it."""
        ...

    @abstractmethod
    async def list_for_account(self, account_id: AccountId) -> list[AuthMethod]:
        """Get all AuthMethods for an account, oldest link first."""
        ...

    @abstractmethod
    async def save(self, auth_method: AuthMethod) -> None:
        """Insert or update an AuthMethod.

        Raises:
            ConflictError: If a uniqueness constraint would be violated
        """
        ...
