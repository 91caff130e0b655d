from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from idlink.domain.shared.error import StorageUnavailableError
from idlink.domain.shared.uow import UnitOfWork


class SqlUnitOfWork(UnitOfWork):
    """UnitOfWork over the request's AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise StorageUnavailableError("Failed to commit changes", code="storage_error") from e

    async def rollback(self) -> None:
        await self.session.rollback()
