"""Re-authorization command: refresh the cached token of a linked provider."""

import logfire

from idlink.domain.auth.command.login import commit_link, get_provider
from idlink.domain.auth.model.value import AccountId
from idlink.domain.auth.port.provider_registry import ProviderRegistry
from idlink.domain.auth.port.repository import AccountRepository
from idlink.domain.auth.service.resolver import IdentityResolver
from idlink.domain.shared.command import Command, CommandHandler, Result
from idlink.domain.shared.uow import UnitOfWork


class CompleteReauthorization(Command):
    """Command to complete a re-authorization flow for an already-linked provider."""

    provider: str
    code: str
    callback_url: str
    session_account_id: AccountId | None = None


class CompleteReauthorizationResult(Result):
    access_token: str
    upgraded: bool
    error: str | None = None


class CompleteReauthorizationHandler(
    CommandHandler[CompleteReauthorization, CompleteReauthorizationResult]
):
    """Handler for CompleteReauthorization command."""

    provider_registry: ProviderRegistry
    account_repo: AccountRepository
    resolver: IdentityResolver
    uow: UnitOfWork

    async def run(self, cmd: CompleteReauthorization) -> CompleteReauthorizationResult:
        with logfire.span("CompleteReauthorization", provider=cmd.provider):
            identity_provider = get_provider(self.provider_registry, cmd.provider)

            session_account = None
            if cmd.session_account_id is not None:
                session_account = await self.account_repo.get(cmd.session_account_id)

            assertion = await identity_provider.exchange_code(cmd.code, cmd.callback_url)

            try:
                outcome = await self.resolver.reauthorize(
                    session_account,
                    cmd.provider,
                    assertion.profile,
                    assertion.access_token,
                    exchanger=self.provider_registry.get_exchanger(cmd.provider),
                )
            except Exception:
                await self.uow.rollback()
                raise
            await commit_link(self.uow)

            return CompleteReauthorizationResult(
                access_token=outcome.access_token,
                upgraded=outcome.upgraded,
                error=outcome.error,
            )
