"""AuthMethod entity for the auth domain.

Links an Account to an identity at an external provider.
"""

from datetime import UTC, datetime
from typing import Any

from idlink.domain.auth.model.value import AccountId, AuthMethodId, ProviderIdentity
from idlink.domain.shared.model.entity import Entity


class AuthMethod(Entity):
    """A provider identity linked to an Account, with cached provider data.

    Examples:
    - facebook: provider_name="facebook", provider_id="10203040"
    - github: provider_name="github", provider_id="583231"

    Invariants:
    - `(account_id, provider_name)` is unique: one link per provider per account
    - `(provider_name, provider_id)` is globally unique
    - `account_id` and `linked_at` are immutable after creation
    """

    id: AuthMethodId
    account_id: AccountId
    provider_name: str
    provider_id: str
    profile: dict[str, Any] | None = None  # Cached provider profile
    access_token: str | None = None  # Cached provider access token
    linked_at: datetime
    updated_at: datetime | None = None

    @property
    def provider_identity(self) -> ProviderIdentity:
        return ProviderIdentity(provider_name=self.provider_name, provider_id=self.provider_id)

    @classmethod
    def create(
        cls,
        account_id: AccountId,
        provider_name: str,
        provider_id: str,
        profile: dict[str, Any] | None = None,
        access_token: str | None = None,
    ) -> "AuthMethod":
        """Create a new provider link."""
        return cls(
            id=AuthMethodId.generate(),
            account_id=account_id,
            provider_name=provider_name,
            provider_id=provider_id,
            profile=profile,
            access_token=access_token,
            linked_at=datetime.now(UTC),
        )

    def refresh(
        self,
        provider_id: str,
        profile: dict[str, Any] | None,
        access_token: str | None,
    ) -> None:
        """Replace cached provider data, keeping the original link time."""
        self.provider_id = provider_id
        self.profile = profile
        self.access_token = access_token
        self.updated_at = datetime.now(UTC)
