"""Password hashing port for local credentials."""

from abc import abstractmethod
from typing import Protocol

from idlink.domain.shared.port import Port


class PasswordHasher(Port, Protocol):
    @abstractmethod
    def hash(self, password: str) -> str: ...

    @abstractmethod
    def verify(self, password_hash: str, password: str) -> bool:
        """Return True if the password matches; never raises on mismatch."""
        ...
