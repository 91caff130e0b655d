"""In-memory ports for auth domain tests."""

import pytest

from idlink.config import JwtConfig
from idlink.domain.auth.model.account import Account, normalize_email, normalize_username
from idlink.domain.auth.model.auth_method import AuthMethod
from idlink.domain.auth.model.profile import ExternalProfile, ProfileEmail
from idlink.domain.auth.model.value import AccountId
from idlink.domain.auth.port.repository import AccountRepository, AuthMethodRepository
from idlink.domain.auth.service.ledger import AuthMethodLedger
from idlink.domain.auth.service.resolver import IdentityResolver
from idlink.domain.auth.service.token import TokenService
from idlink.domain.auth.service.username import UsernameGenerator
from idlink.domain.shared.error import ConflictError, UsernameTakenError


class InMemoryAuthMethodRepository(AuthMethodRepository):
    def __init__(self) -> None:
        self.rows: dict[str, AuthMethod] = {}
        self.saves = 0

    async def get(self, account_id: AccountId, provider_name: str) -> AuthMethod | None:
        for row in self.rows.values():
            if row.account_id == account_id and row.provider_name == provider_name:
                return row.model_copy(deep=True)
        return None

    async def get_by_provider_identity(
        self, provider_name: str, provider_id: str
    ) -> AuthMethod | None:
        for row in self.rows.values():
            if row.provider_name == provider_name and row.provider_id == provider_id:
                return row.model_copy(deep=True)
        return None

    async def list_for_account(self, account_id: AccountId) -> list[AuthMethod]:
        rows = [r for r in self.rows.values() if r.account_id == account_id]
        return sorted((r.model_copy(deep=True) for r in rows), key=lambda r: r.linked_at)

    async def save(self, auth_method: AuthMethod) -> None:
        for row in self.rows.values():
            if row.id == auth_method.id:
                continue
            if row.provider_identity == auth_method.provider_identity or (
                row.account_id == auth_method.account_id
                and row.provider_name == auth_method.provider_name
            ):
                raise ConflictError("duplicate auth method", code="identity_linked_elsewhere")
        self.saves += 1
        self.rows[str(auth_method.id)] = auth_method.model_copy(deep=True)


class InMemoryAccountRepository(AccountRepository):
    def __init__(self, auth_methods: InMemoryAuthMethodRepository) -> None:
        self.accounts: dict[str, Account] = {}
        self.claims: dict[str, str] = {}
        self._auth_methods = auth_methods

    async def get(self, account_id: AccountId) -> Account | None:
        return self.accounts.get(str(account_id))

    async def get_by_username(self, username: str) -> Account | None:
        account_id = self.claims.get(normalize_username(username))
        return self.accounts.get(account_id) if account_id else None

    async def get_by_email(self, email: str) -> Account | None:
        matches = [
            a
            for a in self.accounts.values()
            if a.email and normalize_email(a.email) == normalize_email(email)
        ]
        return min(matches, key=lambda a: a.created_at) if matches else None

    async def get_by_provider_identity(
        self, provider_name: str, provider_id: str
    ) -> Account | None:
        auth_method = await self._auth_methods.get_by_provider_identity(provider_name, provider_id)
        return await self.get(auth_method.account_id) if auth_method else None

    async def username_exists(self, username: str) -> bool:
        return normalize_username(username) in self.claims

    async def create(self, account: Account) -> None:
        if account.username_key in self.claims:
            raise UsernameTakenError(f"Username is already taken: {account.username}")
        self.claims[account.username_key] = str(account.id)
        self.accounts[str(account.id)] = account


def _make_profile(
    provider_name: str = "facebook",
    provider_id: str | None = "10001",
    email: str | None = "jane.doe@example.com",
    **kwargs,
) -> ExternalProfile:
    """Helper to create a test external profile."""
    return ExternalProfile(
        provider_name=provider_name,
        provider_id=provider_id,
        emails=(ProfileEmail(value=email),) if email else (),
        **kwargs,
    )


@pytest.fixture
def make_profile():
    return _make_profile


@pytest.fixture
def auth_method_repo() -> InMemoryAuthMethodRepository:
    return InMemoryAuthMethodRepository()


@pytest.fixture
def account_repo(auth_method_repo) -> InMemoryAccountRepository:
    return InMemoryAccountRepository(auth_method_repo)


@pytest.fixture
def ledger(auth_method_repo) -> AuthMethodLedger:
    return AuthMethodLedger(_repo=auth_method_repo)


@pytest.fixture
def username_generator(account_repo) -> UsernameGenerator:
    return UsernameGenerator.with_reserved(account_repo, ["admin", "Support"])


@pytest.fixture
def resolver(account_repo, ledger, username_generator) -> IdentityResolver:
    return IdentityResolver(
        _account_repo=account_repo,
        _ledger=ledger,
        _username_generator=username_generator,
    )


@pytest.fixture
def token_service() -> TokenService:
    """Create a TokenService with test config."""
    config = JwtConfig(
        secret="test-secret-key-256-bits-long-xx",
        algorithm="HS256",
        access_token_expire_minutes=60,
    )
    return TokenService(_config=config)
