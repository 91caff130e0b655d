from abc import abstractmethod
from typing import Protocol

from idlink.domain.shared.port import Port


class UnitOfWork(Port, Protocol):
    """Commit point for the current request's writes.

    Handlers commit before reporting success so the caller never sees a
    result that is not yet durable.
    """

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...
