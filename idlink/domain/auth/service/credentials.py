"""Username/email + password authentication."""

import logging

from idlink.domain.auth.model.account import Account
from idlink.domain.auth.port.password_hasher import PasswordHasher
from idlink.domain.auth.port.repository import AccountRepository
from idlink.domain.shared.error import AuthorizationError
from idlink.domain.shared.service import Service

logger = logging.getLogger(__name__)

UNKNOWN_LOGIN = "We could not find the nickname you provided."
WRONG_PASSWORD = "The password you provided does not match the password in our system."


class CredentialsService(Service):
    """Authenticates local accounts by username or email and password."""

    _account_repo: AccountRepository
    _hasher: PasswordHasher

    async def authenticate(self, login: str, password: str) -> Account:
        """Return the account matching the credentials.

        A login containing "@" is treated as an email, anything else as a username.

        Raises:
            AuthorizationError: If the account is unknown or the password is wrong
        """
        login = login.strip()
        if "@" in login:
            account = await self._account_repo.get_by_email(login)
        else:
            account = await self._account_repo.get_by_username(login)

        if account is None:
            raise AuthorizationError(UNKNOWN_LOGIN, code="unknown_login")

        # Accounts provisioned from a provider have no password until one is set
        if not account.password_hash or not self._hasher.verify(account.password_hash, password):
            logger.info("Password login rejected: account_id=%s", account.id)
            raise AuthorizationError(WRONG_PASSWORD, code="wrong_password")

        return account
