"""SQL repository implementations for the auth domain."""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import exists, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from idlink.domain.auth.model.account import Account, normalize_email, normalize_username
from idlink.domain.auth.model.auth_method import AuthMethod
from idlink.domain.auth.model.value import AccountId, AuthMethodId
from idlink.domain.auth.port.repository import AccountRepository, AuthMethodRepository
from idlink.domain.shared.error import (
    ConflictError,
    StorageUnavailableError,
    UsernameTakenError,
)
from idlink.infrastructure.persistence.tables import (
    accounts_table,
    auth_methods_table,
    username_claims_table,
)


def _row_to_account(row: dict) -> Account:
    """Convert a database row to an Account model."""
    return Account(
        id=AccountId(UUID(row["id"])),
        username=row["username"],
        email=row["email"],
        screen_name=row["screen_name"],
        password_hash=row["password_hash"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _account_to_dict(account: Account) -> dict:
    """Convert an Account model to a database row dict."""
    return {
        "id": str(account.id),
        "username": account.username,
        "username_key": account.username_key,
        "email": account.email,
        "email_key": normalize_email(account.email) if account.email else None,
        "screen_name": account.screen_name,
        "password_hash": account.password_hash,
        "created_at": account.created_at,
        "updated_at": account.updated_at,
    }


def _row_to_auth_method(row: dict) -> AuthMethod:
    """Convert a database row to an AuthMethod model."""
    return AuthMethod(
        id=AuthMethodId(UUID(row["id"])),
        account_id=AccountId(UUID(row["account_id"])),
        provider_name=row["provider_name"],
        provider_id=row["provider_id"],
        profile=row["profile"],
        access_token=row["access_token"],
        linked_at=row["linked_at"],
        updated_at=row["updated_at"],
    )


def _auth_method_to_dict(auth_method: AuthMethod) -> dict:
    """Convert an AuthMethod model to a database row dict."""
    return {
        "id": str(auth_method.id),
        "account_id": str(auth_method.account_id),
        "provider_name": auth_method.provider_name,
        "provider_id": auth_method.provider_id,
        "profile": auth_method.profile,
        "access_token": auth_method.access_token,
        "linked_at": auth_method.linked_at,
        "updated_at": auth_method.updated_at,
    }


class SqlAccountRepository(AccountRepository):
    """SQL implementation of AccountRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _first(self, stmt) -> Account | None:
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return _row_to_account(dict(row)) if row else None

    async def get(self, account_id: AccountId) -> Account | None:
        stmt = select(accounts_table).where(accounts_table.c.id == str(account_id))
        return await self._first(stmt)

    async def get_by_username(self, username: str) -> Account | None:
        stmt = select(accounts_table).where(
            accounts_table.c.username_key == normalize_username(username)
        )
        return await self._first(stmt)

    async def get_by_email(self, email: str) -> Account | None:
        stmt = (
            select(accounts_table)
            .where(accounts_table.c.email_key == normalize_email(email))
            .order_by(accounts_table.c.created_at)
        )
        return await self._first(stmt)

    async def get_by_provider_identity(
        self, provider_name: str, provider_id: str
    ) -> Account | None:
        stmt = (
            select(accounts_table)
            .join(auth_methods_table, auth_methods_table.c.account_id == accounts_table.c.id)
            .where(
                auth_methods_table.c.provider_name == provider_name,
                auth_methods_table.c.provider_id == provider_id,
            )
        )
        return await self._first(stmt)

    async def username_exists(self, username: str) -> bool:
        stmt = select(
            exists().where(username_claims_table.c.username_key == normalize_username(username))
        )
        result = await self.session.execute(stmt)
        return bool(result.scalar())

    async def create(self, account: Account) -> None:
        """Insert the account and its username claim in one savepoint.

        The claim insert is the compare-and-set: a duplicate key means
        another account got the username first.
        """
        try:
            async with self.session.begin_nested():
                await self.session.execute(insert(accounts_table).values(**_account_to_dict(account)))
                await self.session.execute(
                    insert(username_claims_table).values(
                        username_key=account.username_key,
                        account_id=str(account.id),
                        claimed_at=datetime.now(UTC),
                    )
                )
        except IntegrityError as e:
            raise UsernameTakenError(
                f"Username is already taken: {account.username}",
                code="username_taken",
            ) from e
        except SQLAlchemyError as e:
            raise StorageUnavailableError("Failed to create account", code="storage_error") from e


class SqlAuthMethodRepository(AuthMethodRepository):
    """SQL implementation of AuthMethodRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _execute(self, stmt):
        try:
            return await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageUnavailableError(
                "Failed to read auth methods", code="storage_error"
            ) from e

    async def _first(self, stmt) -> AuthMethod | None:
        result = await self._execute(stmt)
        row = result.mappings().first()
        return _row_to_auth_method(dict(row)) if row else None

    async def _get_by_id(self, auth_method_id: AuthMethodId) -> AuthMethod | None:
        stmt = select(auth_methods_table).where(auth_methods_table.c.id == str(auth_method_id))
        return await self._first(stmt)

    async def get(self, account_id: AccountId, provider_name: str) -> AuthMethod | None:
        stmt = select(auth_methods_table).where(
            auth_methods_table.c.account_id == str(account_id),
            auth_methods_table.c.provider_name == provider_name,
        )
        return await self._first(stmt)

    async def get_by_provider_identity(
        self, provider_name: str, provider_id: str
    ) -> AuthMethod | None:
        stmt = select(auth_methods_table).where(
            auth_methods_table.c.provider_name == provider_name,
            auth_methods_table.c.provider_id == provider_id,
        )
        return await self._first(stmt)

    async def list_for_account(self, account_id: AccountId) -> list[AuthMethod]:
        stmt = (
            select(auth_methods_table)
            .where(auth_methods_table.c.account_id == str(account_id))
            .order_by(auth_methods_table.c.linked_at)
        )
        result = await self._execute(stmt)
        return [_row_to_auth_method(dict(row)) for row in result.mappings().all()]

    async def save(self, auth_method: AuthMethod) -> None:
        values = _auth_method_to_dict(auth_method)

        try:
            async with self.session.begin_nested():
                existing = await self._get_by_id(auth_method.id)
                if existing:
                    # account_id and linked_at are immutable
                    del values["account_id"], values["linked_at"]
                    stmt = (
                        update(auth_methods_table)
                        .where(auth_methods_table.c.id == str(auth_method.id))
                        .values(**values)
                    )
                else:
                    stmt = insert(auth_methods_table).values(**values)
                await self.session.execute(stmt)
        except IntegrityError as e:
            raise ConflictError(
                f"Provider identity already linked: {auth_method.provider_name}",
                code="identity_linked_elsewhere",
            ) from e
        except SQLAlchemyError as e:
            raise StorageUnavailableError(
                "Failed to save auth method", code="storage_error"
            ) from e
