"""Login commands for the OAuth popup flow."""

import logging
from datetime import datetime

import logfire

from idlink.domain.auth.model.auth_method import AuthMethod
from idlink.domain.auth.model.value import AccountId
from idlink.domain.auth.port.identity_provider import IdentityProvider
from idlink.domain.auth.port.provider_registry import ProviderRegistry
from idlink.domain.auth.port.repository import AccountRepository
from idlink.domain.auth.service.ledger import AuthMethodLedger
from idlink.domain.auth.service.resolver import IdentityResolver
from idlink.domain.auth.service.token import TokenService
from idlink.domain.shared.command import Command, CommandHandler, Result
from idlink.domain.shared.error import (
    AuthorizationError,
    LinkFailureError,
    NotFoundError,
    StorageUnavailableError,
)
from idlink.domain.shared.uow import UnitOfWork

logger = logging.getLogger(__name__)


def get_provider(registry: ProviderRegistry, name: str) -> IdentityProvider:
    identity_provider = registry.get(name)
    if identity_provider is None:
        raise NotFoundError(f"Unknown identity provider: {name}", code="unknown_provider")
    return identity_provider


async def commit_link(uow: UnitOfWork) -> None:
    """Make the resolved link durable before success is reported."""
    try:
        await uow.commit()
    except StorageUnavailableError as e:
        raise LinkFailureError(e.message, code="link_failure") from e


class AuthMethodView(Result):
    """Public view of a linked provider identity (no cached token)."""

    provider_name: str
    provider_id: str
    linked_at: datetime

    @classmethod
    def from_auth_method(cls, auth_method: AuthMethod) -> "AuthMethodView":
        return cls(
            provider_name=auth_method.provider_name,
            provider_id=auth_method.provider_id,
            linked_at=auth_method.linked_at,
        )


class InitiateLogin(Command):
    """Command to start an OAuth popup flow."""

    provider: str
    callback_url: str  # Where the IdP redirects after auth
    origin: str | None = None  # Origin of the opener window, captured now
    account_id: AccountId | None = None  # Signed-in account, if any
    reauthorize: bool = False


class InitiateLoginResult(Result):
    """Result containing the authorization URL and the flow cookie value."""

    authorization_url: str
    flow_token: str


class InitiateLoginHandler(CommandHandler[InitiateLogin, InitiateLoginResult]):
    """Handler for InitiateLogin command."""

    provider_registry: ProviderRegistry
    token_service: TokenService

    async def run(self, cmd: InitiateLogin) -> InitiateLoginResult:
        identity_provider = get_provider(self.provider_registry, cmd.provider)

        if cmd.reauthorize:
            if not identity_provider.supports_reauthorization:
                raise NotFoundError(
                    f"Re-authorization is not supported for {cmd.provider}",
                    code="unknown_provider",
                )
            if cmd.account_id is None:
                raise AuthorizationError("Unauthorized", code="unauthorized")

        flow_token, nonce = self.token_service.create_flow_token(
            provider=cmd.provider,
            origin=cmd.origin,
            mode="reauthorize" if cmd.reauthorize else "authenticate",
            account_id=cmd.account_id,
        )

        authorization_url = identity_provider.get_authorization_url(
            state=nonce,
            redirect_uri=cmd.callback_url,
            reauthorize=cmd.reauthorize,
        )

        return InitiateLoginResult(authorization_url=authorization_url, flow_token=flow_token)


class CompleteOAuth(Command):
    """Command to complete the OAuth flow with an authorization code."""

    provider: str
    code: str
    callback_url: str  # Must match the one used in authorization
    session_account_id: AccountId | None = None  # From the verified flow token


class CompleteOAuthResult(Result):
    """Result of resolving the provider identity to an account."""

    account_id: str
    username: str
    linked: bool
    session_linked: bool
    auth_token: str
    auth_methods: list[AuthMethodView]


class CompleteOAuthHandler(CommandHandler[CompleteOAuth, CompleteOAuthResult]):
    """Handler for CompleteOAuth command."""

    provider_registry: ProviderRegistry
    account_repo: AccountRepository
    resolver: IdentityResolver
    ledger: AuthMethodLedger
    token_service: TokenService
    uow: UnitOfWork

    async def run(self, cmd: CompleteOAuth) -> CompleteOAuthResult:
        with logfire.span("CompleteOAuth", provider=cmd.provider):
            identity_provider = get_provider(self.provider_registry, cmd.provider)

            session_account = None
            if cmd.session_account_id is not None:
                session_account = await self.account_repo.get(cmd.session_account_id)
                if session_account is None:
                    raise AuthorizationError("Unauthorized", code="unauthorized")

            assertion = await identity_provider.exchange_code(cmd.code, cmd.callback_url)

            try:
                outcome = await self.resolver.resolve(
                    session_account,
                    cmd.provider,
                    assertion.profile,
                    assertion.access_token,
                )
                auth_methods = await self.ledger.list(outcome.account.id)
            except Exception:
                # Drop a half-written resolution, e.g. an account whose link failed
                await self.uow.rollback()
                raise

            await commit_link(self.uow)
            auth_token = self.token_service.create_access_token(outcome.account)

            logger.info(
                "OAuth complete: account_id=%s, provider=%s, linked=%s",
                outcome.account.id,
                cmd.provider,
                outcome.linked,
            )

            return CompleteOAuthResult(
                account_id=str(outcome.account.id),
                username=outcome.account.username,
                linked=outcome.linked,
                session_linked=session_account is not None,
                auth_token=auth_token,
                auth_methods=[AuthMethodView.from_auth_method(m) for m in auth_methods],
            )
