"""Password session command."""

from idlink.domain.auth.service.credentials import CredentialsService
from idlink.domain.auth.service.token import TokenService
from idlink.domain.shared.command import Command, CommandHandler, Result


class PasswordLogin(Command):
    """Command to sign in with username (or email) and password."""

    username: str
    password: str


class PasswordLoginResult(Result):
    account_id: str
    username: str
    auth_token: str


class PasswordLoginHandler(CommandHandler[PasswordLogin, PasswordLoginResult]):
    credentials: CredentialsService
    token_service: TokenService

    async def run(self, cmd: PasswordLogin) -> PasswordLoginResult:
        account = await self.credentials.authenticate(cmd.username, cmd.password)
        return PasswordLoginResult(
            account_id=str(account.id),
            username=account.username,
            auth_token=self.token_service.create_access_token(account),
        )
