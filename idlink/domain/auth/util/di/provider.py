"""DI provider for auth domain."""

import logging

import jwt
from dishka import from_context, provide
from fastapi import HTTPException
from starlette.requests import Request

from idlink.config import Config
from idlink.domain.auth.command.login import CompleteOAuthHandler, InitiateLoginHandler
from idlink.domain.auth.command.reauthorize import CompleteReauthorizationHandler
from idlink.domain.auth.command.session import PasswordLoginHandler
from idlink.domain.auth.model.value import CurrentUser
from idlink.domain.auth.port.password_hasher import PasswordHasher
from idlink.domain.auth.port.repository import AccountRepository, AuthMethodRepository
from idlink.domain.auth.service.credentials import CredentialsService
from idlink.domain.auth.service.ledger import AuthMethodLedger
from idlink.domain.auth.service.resolver import IdentityResolver
from idlink.domain.auth.service.token import TokenService
from idlink.domain.auth.service.username import UsernameGenerator
from idlink.util.di.base import Provider
from idlink.util.di.scope import Scope

logger = logging.getLogger(__name__)


class AuthProvider(Provider):
    """DI provider for auth domain services and handlers."""

    request = from_context(provides=Request, scope=Scope.UOW)

    # Command Handlers
    initiate_login_handler = provide(InitiateLoginHandler, scope=Scope.UOW)
    complete_oauth_handler = provide(CompleteOAuthHandler, scope=Scope.UOW)
    complete_reauthorization_handler = provide(CompleteReauthorizationHandler, scope=Scope.UOW)
    password_login_handler = provide(PasswordLoginHandler, scope=Scope.UOW)

    @provide(scope=Scope.UOW)
    def get_token_service(self, config: Config) -> TokenService:
        """Provide TokenService."""
        return TokenService(
            _config=config.auth.jwt,
            _flow_ttl_seconds=config.auth.flow_ttl_seconds,
        )

    @provide(scope=Scope.UOW)
    def get_username_generator(
        self, config: Config, account_repo: AccountRepository
    ) -> UsernameGenerator:
        return UsernameGenerator.with_reserved(account_repo, config.auth.reserved_usernames)

    @provide(scope=Scope.UOW)
    def get_ledger(self, auth_method_repo: AuthMethodRepository) -> AuthMethodLedger:
        return AuthMethodLedger(_repo=auth_method_repo)

    @provide(scope=Scope.UOW)
    def get_identity_resolver(
        self,
        config: Config,
        account_repo: AccountRepository,
        ledger: AuthMethodLedger,
        username_generator: UsernameGenerator,
    ) -> IdentityResolver:
        """Provide IdentityResolver."""
        return IdentityResolver(
            _account_repo=account_repo,
            _ledger=ledger,
            _username_generator=username_generator,
            _provision_attempts=config.auth.provision_attempts,
        )

    @provide(scope=Scope.UOW)
    def get_credentials_service(
        self, account_repo: AccountRepository, hasher: PasswordHasher
    ) -> CredentialsService:
        return CredentialsService(_account_repo=account_repo, _hasher=hasher)

    @provide(scope=Scope.UOW)
    def get_current_user(
        self,
        request: Request,
        token_service: TokenService,
    ) -> CurrentUser:
        """Extract and validate CurrentUser from JWT in Authorization header.

        Raises:
            HTTPException: If token is missing, expired, or invalid
        """
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            raise HTTPException(
                status_code=401,
                detail={"code": "missing_token", "message": "Authorization header required"},
                headers={"WWW-Authenticate": "Bearer"},
            )

        token = auth_header[7:]  # Remove "Bearer " prefix

        try:
            return token_service.current_user(token)
        except jwt.ExpiredSignatureError as e:
            raise HTTPException(
                status_code=401,
                detail={"code": "token_expired", "message": "Token has expired"},
                headers={"WWW-Authenticate": "Bearer"},
            ) from e
        except jwt.InvalidTokenError as e:
            logger.debug("Rejected session token: %s", e)
            raise HTTPException(
                status_code=401,
                detail={"code": "invalid_token", "message": "Invalid token"},
                headers={"WWW-Authenticate": "Bearer"},
            ) from e
