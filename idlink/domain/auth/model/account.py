"""Account aggregate for the auth domain."""

from datetime import UTC, datetime

from idlink.domain.auth.model.value import AccountId
from idlink.domain.shared.model.aggregate import Aggregate


class Account(Aggregate):
    """A local account.

    Accounts are created on first federated login (or by password sign-up)
    and may hold several linked provider identities.

    Invariants:
    - `id` is immutable after creation
    - `username` is unique across the store, compared case-insensitively
    - `updated_at` is set on any modification
    """

    id: AccountId
    username: str
    email: str | None = None
    screen_name: str
    password_hash: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @property
    def username_key(self) -> str:
        """Normalized username used by the uniqueness claim."""
        return normalize_username(self.username)

    @classmethod
    def create(
        cls,
        username: str,
        screen_name: str,
        email: str | None = None,
        password_hash: str | None = None,
    ) -> "Account":
        """Create a new account."""
        return cls(
            id=AccountId.generate(),
            username=username,
            email=email,
            screen_name=screen_name,
            password_hash=password_hash,
            created_at=datetime.now(UTC),
            updated_at=None,
        )


def normalize_username(username: str) -> str:
    return username.lower()


def normalize_email(email: str) -> str:
    return email.strip().lower()
