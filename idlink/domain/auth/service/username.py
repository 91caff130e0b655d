"""Username generation for newly provisioned accounts."""

import logging
import re
from collections.abc import Iterable

from idlink.domain.auth.model.account import normalize_username
from idlink.domain.auth.port.repository import AccountRepository
from idlink.domain.shared.error import CannotDeriveUsernameError
from idlink.domain.shared.model.value import ValueObject
from idlink.domain.shared.service import Service

logger = logging.getLogger(__name__)

_NON_ALPHANUMERIC = re.compile(r"[^A-Za-z0-9]")


class UsernameSignals(ValueObject):
    """Naming hints available for a new account."""

    username: str | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None


def _clean(candidate: str | None) -> str:
    if not candidate:
        return ""
    return _NON_ALPHANUMERIC.sub("", candidate)


def derive_base_username(signals: UsernameSignals) -> str:
    """Pick the base candidate from the first usable signal.

    Examples:
        john.doe@gmail.com => johndoe
        John Doe => JohnDoe

    Raises:
        CannotDeriveUsernameError: If no signal yields any alphanumerics
    """
    candidates: list[str | None] = [signals.username]
    if signals.email:
        candidates.append(signals.email.split("@", 1)[0])
    if signals.first_name and signals.last_name:
        candidates.append(f"{signals.first_name}{signals.last_name}")

    for candidate in candidates:
        cleaned = _clean(candidate)
        if cleaned:
            return cleaned

    raise CannotDeriveUsernameError()


class UsernameGenerator(Service):
    """Derives a free username from profile signals.

    Collisions are resolved by appending 1, 2, ... until the candidate is
    neither claimed nor reserved. The probe is advisory: the account store's
    claim is what finally guarantees uniqueness.
    """

    _account_repo: AccountRepository
    _reserved: frozenset[str] = frozenset()

    @classmethod
    def with_reserved(
        cls, account_repo: AccountRepository, reserved: Iterable[str]
    ) -> "UsernameGenerator":
        return cls(
            _account_repo=account_repo,
            _reserved=frozenset(normalize_username(name) for name in reserved),
        )

    def is_reserved(self, username: str) -> bool:
        return normalize_username(username) in self._reserved

    async def is_available(self, username: str) -> bool:
        if self.is_reserved(username):
            return False
        return not await self._account_repo.username_exists(username)

    async def generate(self, signals: UsernameSignals) -> str:
        """Return a username that is free at the time of the probe.

        Raises:
            CannotDeriveUsernameError: If no usable signal exists
        """
        base = derive_base_username(signals)
        candidate = base
        suffix = 0

        while not await self.is_available(candidate):
            suffix += 1
            candidate = f"{base}{suffix}"

        if suffix:
            logger.debug("Username %s taken, using %s", base, candidate)
        return candidate
