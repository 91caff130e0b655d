"""Identity resolver: decides which account an external identity belongs to."""

import logging

from idlink.domain.auth.model.account import Account
from idlink.domain.auth.model.auth_method import AuthMethod
from idlink.domain.auth.model.outcome import ReauthorizationOutcome, ResolutionOutcome
from idlink.domain.auth.model.profile import ExternalProfile
from idlink.domain.auth.port.repository import AccountRepository
from idlink.domain.auth.port.token_exchange import TokenExchanger
from idlink.domain.auth.service.ledger import AuthMethodLedger
from idlink.domain.auth.service.username import UsernameGenerator, UsernameSignals
from idlink.domain.shared.error import (
    AuthorizationError,
    ConflictError,
    ExchangeFailedError,
    IdentityMismatchError,
    IdlinkError,
    InvalidProfileError,
    LinkFailureError,
    UsernameTakenError,
)
from idlink.domain.shared.service import Service

logger = logging.getLogger(__name__)


def screen_name_for(profile: ExternalProfile, fallback: str) -> str:
    """Display name, else "first last", else first, else provider username."""
    if profile.display_name:
        return profile.display_name
    if profile.first_name and profile.last_name:
        return f"{profile.first_name} {profile.last_name}"
    if profile.first_name:
        return profile.first_name
    return profile.username or fallback


def link_key(profile: ExternalProfile) -> str:
    """Provider id the AuthMethod is keyed on; the email stands in when absent."""
    key = profile.provider_id or profile.primary_email
    if not key:
        raise InvalidProfileError()
    return key


class IdentityResolver(Service):
    """Resolves an external identity assertion to a local account.

    Decision order (first match wins):
    1. the session account, when the user is already signed in
    2. the account already linked to this provider identity
    3. the account registered with the profile's first email
    4. a newly provisioned account

    Every branch caches the provider profile and access token on the
    account's AuthMethod for this provider.
    """

    _account_repo: AccountRepository
    _ledger: AuthMethodLedger
    _username_generator: UsernameGenerator
    _provision_attempts: int = 5

    async def resolve(
        self,
        session_account: Account | None,
        provider_name: str,
        profile: ExternalProfile,
        access_token: str,
    ) -> ResolutionOutcome:
        """Resolve the assertion and persist the provider link.

        Raises:
            InvalidProfileError: If a new account is needed but the profile has no id or email
            CannotDeriveUsernameError: If no username can be derived for a new account
            LinkFailureError: If the account was resolved but the link could not be saved
        """
        if session_account is not None:
            auth_method = await self._link(session_account, provider_name, profile, access_token)
            logger.info(
                "Provider linked to session account: account_id=%s, provider=%s",
                session_account.id,
                provider_name,
            )
            return ResolutionOutcome(account=session_account, linked=True, auth_method=auth_method)

        account = await self._find_existing(provider_name, profile)
        if account is not None:
            auth_method = await self._link(account, provider_name, profile, access_token)
            logger.info(
                "Provider login resolved: account_id=%s, provider=%s",
                account.id,
                provider_name,
            )
            return ResolutionOutcome(account=account, linked=True, auth_method=auth_method)

        account = await self.provision(profile)
        auth_method = await self._link(account, provider_name, profile, access_token)
        return ResolutionOutcome(account=account, linked=False, auth_method=auth_method)

    async def provision(self, profile: ExternalProfile) -> Account:
        """Create a new account from an external profile.

        The username probe is advisory; when the store's claim loses a race
        the username is regenerated, up to the configured number of attempts.
        """
        if not profile.has_key:
            raise InvalidProfileError()

        email = profile.primary_email
        signals = UsernameSignals(
            username=profile.username,
            email=email,
            first_name=profile.first_name,
            last_name=profile.last_name,
        )

        for attempt in range(1, self._provision_attempts + 1):
            username = await self._username_generator.generate(signals)
            account = Account.create(
                username=username,
                email=email,
                screen_name=screen_name_for(profile, fallback=username),
            )
            try:
                await self._account_repo.create(account)
            except UsernameTakenError:
                logger.warning(
                    "Username claim lost a race: username=%s, attempt=%d", username, attempt
                )
                continue

            logger.info(
                "Account provisioned: account_id=%s, username=%s, provider=%s",
                account.id,
                account.username,
                profile.provider_name,
            )
            return account

        raise ConflictError(
            "Could not claim a unique username, please try again",
            code="username_claim_failed",
        )

    async def reauthorize(
        self,
        session_account: Account | None,
        provider_name: str,
        profile: ExternalProfile,
        access_token: str,
        exchanger: TokenExchanger | None = None,
    ) -> ReauthorizationOutcome:
        """Re-prove ownership of an already-linked provider identity.

        The returned identity must match the one linked to the session
        account. The short-lived token is upgraded when an exchanger is
        available; if that fails the short-lived token is cached instead.

        Raises:
            AuthorizationError: If there is no session account
            IdentityMismatchError: If the provider returned a different identity
            LinkFailureError: If the refreshed token could not be saved
        """
        if session_account is None:
            raise AuthorizationError("Unauthorized", code="unauthorized")

        existing = await self._ledger.find(session_account.id, provider_name, profile.provider_id)
        if existing is None:
            raise IdentityMismatchError(
                f"You are authenticated as a different {provider_name} user",
                code="identity_mismatch",
            )

        token = access_token
        upgraded = False
        error: str | None = None
        if exchanger is not None:
            try:
                token = await exchanger.upgrade(access_token)
                upgraded = True
            except ExchangeFailedError as e:
                logger.warning(
                    "Token exchange failed, keeping short-lived token: account_id=%s, provider=%s, error=%s",
                    session_account.id,
                    provider_name,
                    e.message,
                )
                error = e.message

        await self._link(session_account, provider_name, profile, token)
        return ReauthorizationOutcome(access_token=token, upgraded=upgraded, error=error)

    async def _find_existing(
        self, provider_name: str, profile: ExternalProfile
    ) -> Account | None:
        if profile.provider_id:
            account = await self._account_repo.get_by_provider_identity(
                provider_name, profile.provider_id
            )
            if account is not None:
                return account

        email = profile.primary_email
        if email:
            return await self._account_repo.get_by_email(email)
        return None

    async def _link(
        self,
        account: Account,
        provider_name: str,
        profile: ExternalProfile,
        access_token: str,
    ) -> AuthMethod:
        provider_id = link_key(profile)
        try:
            return await self._ledger.upsert(
                account_id=account.id,
                provider_name=provider_name,
                provider_id=provider_id,
                profile=profile.cached_profile(),
                access_token=access_token,
            )
        except IdlinkError as e:
            logger.error(
                "Auth method write failed: account_id=%s, provider=%s, error=%s",
                account.id,
                provider_name,
                e.message,
            )
            raise LinkFailureError(e.message, code="link_failure") from e
        except Exception as e:
            logger.exception(
                "Auth method write failed: account_id=%s, provider=%s",
                account.id,
                provider_name,
            )
            raise LinkFailureError("Failed to link provider identity", code="link_failure") from e
