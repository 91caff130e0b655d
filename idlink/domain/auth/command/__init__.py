"""Auth domain commands."""

from .login import (
    AuthMethodView,
    CompleteOAuth,
    CompleteOAuthHandler,
    CompleteOAuthResult,
    InitiateLogin,
    InitiateLoginHandler,
    InitiateLoginResult,
)
from .reauthorize import (
    CompleteReauthorization,
    CompleteReauthorizationHandler,
    CompleteReauthorizationResult,
)
from .session import PasswordLogin, PasswordLoginHandler, PasswordLoginResult

__all__ = [
    "AuthMethodView",
    "CompleteOAuth",
    "CompleteOAuthHandler",
    "CompleteOAuthResult",
    "CompleteReauthorization",
    "CompleteReauthorizationHandler",
    "CompleteReauthorizationResult",
    "InitiateLogin",
    "InitiateLoginHandler",
    "InitiateLoginResult",
    "PasswordLogin",
    "PasswordLoginHandler",
    "PasswordLoginResult",
]
