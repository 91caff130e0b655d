"""Unit tests for auth command handlers."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from idlink.domain.auth.command.login import (
    CompleteOAuth,
    CompleteOAuthHandler,
    InitiateLogin,
    InitiateLoginHandler,
)
from idlink.domain.auth.command.reauthorize import (
    CompleteReauthorization,
    CompleteReauthorizationHandler,
)
from idlink.domain.auth.command.session import PasswordLogin, PasswordLoginHandler
from idlink.domain.auth.model.account import Account
from idlink.domain.auth.model.profile import ProviderAssertion
from idlink.domain.auth.model.value import AccountId
from idlink.domain.shared.error import (
    AuthorizationError,
    IdentityMismatchError,
    InvalidProfileError,
    LinkFailureError,
    NotFoundError,
    StorageUnavailableError,
)


def make_identity_provider(assertion: ProviderAssertion | None = None) -> MagicMock:
    """Create a mock identity provider."""
    provider = MagicMock()
    provider.provider_name = "facebook"
    provider.supports_reauthorization = True
    provider.get_authorization_url = MagicMock(
        return_value="https://www.facebook.com/dialog/oauth?state=xyz"
    )
    provider.exchange_code = AsyncMock(return_value=assertion)
    return provider


def make_provider_registry(
    identity_provider: MagicMock | None = None, exchanger: AsyncMock | None = None
) -> MagicMock:
    """Create a mock provider registry."""
    if identity_provider is None:
        identity_provider = make_identity_provider()
    registry = MagicMock()
    registry.get.side_effect = lambda name: identity_provider if name == "facebook" else None
    registry.get_exchanger.return_value = exchanger
    registry.available_providers.return_value = ["facebook"]
    return registry


@pytest.fixture
def uow() -> AsyncMock:
    return AsyncMock()


class TestInitiateLoginHandler:
    @pytest.mark.asyncio
    async def test_returns_authorization_url_and_flow_token(self, token_service):
        identity_provider = make_identity_provider()
        handler = InitiateLoginHandler(
            provider_registry=make_provider_registry(identity_provider),
            token_service=token_service,
        )

        result = await handler.run(
            InitiateLogin(
                provider="facebook",
                callback_url="http://localhost/v2/oauth/facebook/callback",
                origin="https://app.example.com",
            )
        )

        assert result.authorization_url == "https://www.facebook.com/dialog/oauth?state=xyz"
        claim = token_service.verify_flow_token(result.flow_token)
        assert claim.origin == "https://app.example.com"
        assert claim.mode == "authenticate"

        # The provider state is the flow nonce
        call_kwargs = identity_provider.get_authorization_url.call_args.kwargs
        assert call_kwargs["state"] == claim.nonce
        assert call_kwargs["reauthorize"] is False

    @pytest.mark.asyncio
    async def test_unknown_provider(self, token_service):
        handler = InitiateLoginHandler(
            provider_registry=make_provider_registry(), token_service=token_service
        )

        with pytest.raises(NotFoundError) as exc_info:
            await handler.run(InitiateLogin(provider="myspace", callback_url="http://x/cb"))

        assert exc_info.value.code == "unknown_provider"

    @pytest.mark.asyncio
    async def test_reauthorize_requires_support(self, token_service):
        identity_provider = make_identity_provider()
        identity_provider.supports_reauthorization = False
        handler = InitiateLoginHandler(
            provider_registry=make_provider_registry(identity_provider),
            token_service=token_service,
        )

        with pytest.raises(NotFoundError):
            await handler.run(
                InitiateLogin(
                    provider="facebook",
                    callback_url="http://x/cb",
                    account_id=AccountId.generate(),
                    reauthorize=True,
                )
            )

    @pytest.mark.asyncio
    async def test_reauthorize_requires_session(self, token_service):
        handler = InitiateLoginHandler(
            provider_registry=make_provider_registry(), token_service=token_service
        )

        with pytest.raises(AuthorizationError):
            await handler.run(
                InitiateLogin(provider="facebook", callback_url="http://x/cb", reauthorize=True)
            )


class TestCompleteOAuthHandler:
    def make_handler(self, registry, account_repo, resolver, ledger, token_service, uow):
        return CompleteOAuthHandler(
            provider_registry=registry,
            account_repo=account_repo,
            resolver=resolver,
            ledger=ledger,
            token_service=token_service,
            uow=uow,
        )

    @pytest.mark.asyncio
    async def test_provisions_and_issues_token(
        self, account_repo, resolver, ledger, token_service, uow, make_profile
    ):
        assertion = ProviderAssertion(profile=make_profile(), access_token="short")
        registry = make_provider_registry(make_identity_provider(assertion))
        handler = self.make_handler(registry, account_repo, resolver, ledger, token_service, uow)

        result = await handler.run(
            CompleteOAuth(provider="facebook", code="code-123", callback_url="http://x/cb")
        )

        assert result.linked is False
        assert result.session_linked is False
        assert result.username == "janedoe"
        assert str(token_service.current_user(result.auth_token).account_id) == result.account_id
        assert [m.provider_name for m in result.auth_methods] == ["facebook"]
        uow.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_links_to_session_account(
        self, account_repo, resolver, ledger, token_service, uow, make_profile
    ):
        session_account = Account.create(username="me", screen_name="Me")
        await account_repo.create(session_account)
        assertion = ProviderAssertion(profile=make_profile(), access_token="short")
        registry = make_provider_registry(make_identity_provider(assertion))
        handler = self.make_handler(registry, account_repo, resolver, ledger, token_service, uow)

        result = await handler.run(
            CompleteOAuth(
                provider="facebook",
                code="code-123",
                callback_url="http://x/cb",
                session_account_id=session_account.id,
            )
        )

        assert result.session_linked is True
        assert result.account_id == str(session_account.id)

    @pytest.mark.asyncio
    async def test_unknown_session_account(
        self, account_repo, resolver, ledger, token_service, uow
    ):
        identity_provider = make_identity_provider()
        registry = make_provider_registry(identity_provider)
        handler = self.make_handler(registry, account_repo, resolver, ledger, token_service, uow)

        with pytest.raises(AuthorizationError):
            await handler.run(
                CompleteOAuth(
                    provider="facebook",
                    code="code-123",
                    callback_url="http://x/cb",
                    session_account_id=AccountId.generate(),
                )
            )
        identity_provider.exchange_code.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_commit_failure_is_link_failure(
        self, account_repo, resolver, ledger, token_service, uow, make_profile
    ):
        uow.commit.side_effect = StorageUnavailableError("Failed to commit changes")
        assertion = ProviderAssertion(profile=make_profile(), access_token="short")
        registry = make_provider_registry(make_identity_provider(assertion))
        handler = self.make_handler(registry, account_repo, resolver, ledger, token_service, uow)

        with pytest.raises(LinkFailureError):
            await handler.run(
                CompleteOAuth(provider="facebook", code="code-123", callback_url="http://x/cb")
            )

    @pytest.mark.asyncio
    async def test_resolution_failure_rolls_back(
        self, account_repo, resolver, ledger, token_service, uow, make_profile
    ):
        profile = make_profile(provider_id=None, email=None)
        assertion = ProviderAssertion(profile=profile, access_token="short")
        registry = make_provider_registry(make_identity_provider(assertion))
        handler = self.make_handler(registry, account_repo, resolver, ledger, token_service, uow)

        with pytest.raises(InvalidProfileError):
            await handler.run(
                CompleteOAuth(provider="facebook", code="code-123", callback_url="http://x/cb")
            )

        uow.rollback.assert_awaited_once()
        uow.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_storage_error_while_linking_rolls_back_new_account(
        self, account_repo, auth_method_repo, resolver, ledger, token_service, uow, make_profile
    ):
        lookup = auth_method_repo.get_by_provider_identity
        calls = 0

        async def fail_on_link(provider_name, provider_id):
            nonlocal calls
            calls += 1
            if calls == 2:
                raise OperationalError("SELECT", {}, Exception("database is locked"))
            return await lookup(provider_name, provider_id)

        auth_method_repo.get_by_provider_identity = fail_on_link
        assertion = ProviderAssertion(profile=make_profile(), access_token="short")
        registry = make_provider_registry(make_identity_provider(assertion))
        handler = self.make_handler(registry, account_repo, resolver, ledger, token_service, uow)

        with pytest.raises(LinkFailureError) as exc_info:
            await handler.run(
                CompleteOAuth(provider="facebook", code="code-123", callback_url="http://x/cb")
            )

        assert isinstance(exc_info.value.__cause__, OperationalError)
        uow.rollback.assert_awaited_once()
        uow.commit.assert_not_awaited()


class TestCompleteReauthorizationHandler:
    @pytest.mark.asyncio
    async def test_refreshes_token(self, account_repo, resolver, uow, make_profile):
        linked = await resolver.resolve(None, "facebook", make_profile(), "short-1")
        exchanger = AsyncMock()
        exchanger.upgrade.return_value = "long-lived"
        assertion = ProviderAssertion(profile=make_profile(), access_token="short-2")
        registry = make_provider_registry(make_identity_provider(assertion), exchanger)
        handler = CompleteReauthorizationHandler(
            provider_registry=registry, account_repo=account_repo, resolver=resolver, uow=uow
        )

        result = await handler.run(
            CompleteReauthorization(
                provider="facebook",
                code="code",
                callback_url="http://x/cb",
                session_account_id=linked.account.id,
            )
        )

        assert result.access_token == "long-lived"
        assert result.upgraded is True
        uow.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_mismatch_rolls_back(self, account_repo, resolver, uow, make_profile):
        linked = await resolver.resolve(None, "facebook", make_profile(), "short-1")
        assertion = ProviderAssertion(profile=make_profile(provider_id="other"), access_token="s")
        registry = make_provider_registry(make_identity_provider(assertion))
        handler = CompleteReauthorizationHandler(
            provider_registry=registry, account_repo=account_repo, resolver=resolver, uow=uow
        )

        with pytest.raises(IdentityMismatchError):
            await handler.run(
                CompleteReauthorization(
                    provider="facebook",
                    code="code",
                    callback_url="http://x/cb",
                    session_account_id=linked.account.id,
                )
            )
        uow.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unexpected_error_rolls_back(self, account_repo, uow, make_profile):
        resolver = AsyncMock()
        resolver.reauthorize.side_effect = OperationalError("UPDATE", {}, Exception("disk I/O error"))
        assertion = ProviderAssertion(profile=make_profile(), access_token="s")
        registry = make_provider_registry(make_identity_provider(assertion))
        handler = CompleteReauthorizationHandler(
            provider_registry=registry, account_repo=account_repo, resolver=resolver, uow=uow
        )

        with pytest.raises(OperationalError):
            await handler.run(
                CompleteReauthorization(provider="facebook", code="code", callback_url="http://x/cb")
            )
        uow.rollback.assert_awaited_once()
        uow.commit.assert_not_awaited()


class TestPasswordLoginHandler:
    @pytest.mark.asyncio
    async def test_issues_session_token(self, token_service):
        account = Account.create(username="jane", screen_name="Jane")
        credentials = AsyncMock()
        credentials.authenticate.return_value = account
        handler = PasswordLoginHandler(credentials=credentials, token_service=token_service)

        result = await handler.run(PasswordLogin(username="jane", password="pw"))

        credentials.authenticate.assert_awaited_once_with("jane", "pw")
        assert result.username == "jane"
        assert token_service.current_user(result.auth_token).account_id == account.id
