"""Auth-method ledger: the per-account record of linked provider identities."""

import logging
from typing import Any

from idlink.domain.auth.model.auth_method import AuthMethod
from idlink.domain.auth.model.value import AccountId
from idlink.domain.auth.port.repository import AuthMethodRepository
from idlink.domain.shared.error import ConflictError
from idlink.domain.shared.service import Service

logger = logging.getLogger(__name__)


class AuthMethodLedger(Service):
    """Maintains one AuthMethod per (account, provider).

    The ledger never moves a link between accounts. A provider identity
    already linked to another account is refused.
    """

    _repo: AuthMethodRepository

    async def upsert(
        self,
        account_id: AccountId,
        provider_name: str,
        provider_id: str,
        profile: dict[str, Any] | None,
        access_token: str | None,
    ) -> AuthMethod:
        """Insert or replace the account's AuthMethod for a provider.

        Replacing keeps `linked_at` and refreshes the cached profile and token.

        Raises:
            ConflictError: If the provider identity belongs to another account
        """
        owner = await self._repo.get_by_provider_identity(provider_name, provider_id)
        if owner is not None and owner.account_id != account_id:
            raise ConflictError(
                f"This {provider_name} account is already linked to another user",
                code="identity_linked_elsewhere",
            )

        auth_method = owner or await self._repo.get(account_id, provider_name)
        if auth_method is None:
            auth_method = AuthMethod.create(
                account_id=account_id,
                provider_name=provider_name,
                provider_id=provider_id,
                profile=profile,
                access_token=access_token,
            )
            logger.info(
                "Auth method linked: account_id=%s, provider=%s",
                account_id,
                provider_name,
            )
        else:
            auth_method.refresh(provider_id, profile, access_token)

        await self._repo.save(auth_method)
        return auth_method

    async def list(self, account_id: AccountId) -> list[AuthMethod]:
        return await self._repo.list_for_account(account_id)

    async def find(
        self, account_id: AccountId, provider_name: str, provider_id: str | None
    ) -> AuthMethod | None:
        """Find the account's link for exactly this provider identity."""
        if not provider_id:
            return None
        auth_method = await self._repo.get(account_id, provider_name)
        if auth_method is None or auth_method.provider_id != provider_id:
            return None
        return auth_method
