"""Token service for session JWTs and signed OAuth flow tokens."""

import hashlib
import hmac
import json
import logging
import secrets
import time
from base64 import urlsafe_b64decode, urlsafe_b64encode
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Literal
from urllib.parse import urlsplit
from uuid import UUID

import jwt

from idlink.config import JwtConfig
from idlink.domain.auth.model.account import Account
from idlink.domain.auth.model.value import AccountId, CurrentUser
from idlink.domain.shared.service import Service

logger = logging.getLogger(__name__)

FlowMode = Literal["authenticate", "reauthorize"]

# OAuth flow validity period (10 minutes)
DEFAULT_FLOW_TTL_SECONDS = 600


@dataclass(frozen=True)
class FlowClaim:
    """Verified contents of a flow token.

    Captured when the popup flow starts and read once by the callback.
    `origin` is the only origin the popup response may be posted to.
    """

    nonce: str
    provider: str
    mode: FlowMode
    origin: str | None
    account_id: AccountId | None
    exp: int


def normalize_origin(value: str | None) -> str | None:
    """Return `scheme://host[:port]` for an http(s) origin, else None."""
    if not value:
        return None
    parts = urlsplit(value.strip())
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    if parts.path not in ("", "/") or parts.query or parts.fragment:
        return None
    return f"{parts.scheme}://{parts.netloc.lower()}"


class TokenService(Service):
    """Service for session JWTs and OAuth flow tokens.

    - Session tokens are JWTs (HS256) identifying the account
    - Flow tokens are HMAC-signed, expiring payloads stored in a cookie for
      one OAuth round trip; their nonce doubles as the OAuth `state`
    """

    _config: JwtConfig
    _flow_ttl_seconds: int = DEFAULT_FLOW_TTL_SECONDS

    def create_access_token(
        self,
        account: Account,
        additional_claims: dict[str, Any] | None = None,
    ) -> str:
        """Create a session JWT for an account."""
        now = datetime.now(UTC)
        expires_at = now + timedelta(minutes=self._config.access_token_expire_minutes)

        payload = {
            "sub": str(account.id),
            "username": account.username,
            "aud": "authenticated",
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
            "jti": secrets.token_hex(16),
        }

        if additional_claims:
            payload.update(additional_claims)

        return jwt.encode(payload, self._config.secret, algorithm=self._config.algorithm)

    def validate_access_token(self, token: str) -> dict[str, Any]:
        """Validate and decode a session JWT.

        Raises:
            jwt.InvalidTokenError: If token is invalid or expired
        """
        return jwt.decode(
            token,
            self._config.secret,
            algorithms=[self._config.algorithm],
            audience="authenticated",
        )

    def current_user(self, token: str) -> CurrentUser:
        """Decode a session JWT into the caller's account context.

        Raises:
            jwt.InvalidTokenError: If token is invalid, expired or malformed
        """
        payload = self.validate_access_token(token)
        try:
            account_id = AccountId(UUID(payload["sub"]))
        except (KeyError, ValueError) as e:
            raise jwt.InvalidTokenError("Malformed subject claim") from e
        return CurrentUser(account_id=account_id, username=payload.get("username", ""))

    @property
    def flow_ttl_seconds(self) -> int:
        return self._flow_ttl_seconds

    def create_flow_token(
        self,
        provider: str,
        origin: str | None,
        mode: FlowMode = "authenticate",
        account_id: AccountId | None = None,
    ) -> tuple[str, str]:
        """Create a signed, self-verifying flow token.

        Returns:
            Tuple of (token, nonce). The token goes into the flow cookie,
            the nonce is sent to the provider as `state`.
        """
        nonce = secrets.token_urlsafe(16)
        payload = {
            "nonce": nonce,
            "provider": provider,
            "mode": mode,
            "origin": origin,
            "account_id": str(account_id) if account_id else None,
            "exp": int(time.time()) + self._flow_ttl_seconds,
        }
        payload_bytes = json.dumps(payload, separators=(",", ":")).encode()
        payload_b64 = urlsafe_b64encode(payload_bytes).rstrip(b"=").decode()

        signature = hmac.new(self._config.secret.encode(), payload_bytes, hashlib.sha256).digest()
        signature_b64 = urlsafe_b64encode(signature).rstrip(b"=").decode()

        return f"{payload_b64}.{signature_b64}", nonce

    def verify_flow_token(self, token: str | None) -> FlowClaim | None:
        """Verify a flow token and return its claim, or None if invalid or expired."""
        if not token:
            return None

        try:
            parts = token.split(".")
            if len(parts) != 2:
                return None

            payload_b64, signature_b64 = parts

            # Restore base64 padding
            payload_bytes = urlsafe_b64decode(payload_b64 + "==")
            signature = urlsafe_b64decode(signature_b64 + "==")

            expected_sig = hmac.new(
                self._config.secret.encode(), payload_bytes, hashlib.sha256
            ).digest()
            if not hmac.compare_digest(signature, expected_sig):
                logger.warning("Flow token signature verification failed")
                return None

            payload = json.loads(payload_bytes)
            if payload.get("exp", 0) < time.time():
                logger.warning("Flow token expired")
                return None

            mode = payload.get("mode")
            if mode not in ("authenticate", "reauthorize"):
                return None

            account_id = payload.get("account_id")
            return FlowClaim(
                nonce=payload["nonce"],
                provider=payload["provider"],
                mode=mode,
                origin=normalize_origin(payload.get("origin")),
                account_id=AccountId(UUID(account_id)) if account_id else None,
                exp=payload["exp"],
            )

        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Flow token verification error: %s", e)
            return None
