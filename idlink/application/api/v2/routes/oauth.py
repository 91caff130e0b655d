"""OAuth popup routes: login, account linking and re-authorization.

Every step runs inside a popup opened by the web client. The start routes
capture the opener's origin in a signed flow cookie and redirect to the
provider; the callback routes answer with a small HTML page that posts the
outcome back to that origin and closes the popup.
"""

import logging
from typing import Annotated, Any

import jwt
from dishka import FromDishka
from dishka.integrations.fastapi import DishkaRoute
from fastapi import APIRouter, Query, Request, Response
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import BaseModel

from idlink.config import Config
from idlink.domain.auth.command.login import (
    AuthMethodView,
    CompleteOAuth,
    CompleteOAuthHandler,
    InitiateLogin,
    InitiateLoginHandler,
)
from idlink.domain.auth.command.reauthorize import (
    CompleteReauthorization,
    CompleteReauthorizationHandler,
)
from idlink.domain.auth.model.value import AccountId, CurrentUser
from idlink.domain.auth.service.ledger import AuthMethodLedger
from idlink.domain.auth.service.popup import error_payload, render_popup_response
from idlink.domain.auth.service.token import FlowClaim, FlowMode, TokenService, normalize_origin
from idlink.domain.shared.error import AuthorizationError, IdlinkError, InvalidStateError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/oauth", tags=["OAuth"], route_class=DishkaRoute)

FLOW_COOKIE_PATH = "/v2/oauth"
GENERIC_FAILURE = "Authentication failed. Please try again."


class AuthMethodsResponse(BaseModel):
    """Linked provider identities of the signed-in account."""

    auth_methods: list[AuthMethodView]


def _session_account_id(token_service: TokenService, auth_token: str | None) -> AccountId | None:
    """Account of the session token passed to a start route, if it is valid."""
    if not auth_token:
        return None
    try:
        return token_service.current_user(auth_token).account_id
    except jwt.InvalidTokenError as e:
        logger.info("Ignoring invalid session token on OAuth start: %s", e)
        return None


def _popup(payload: dict[str, Any], origin: str | None, config: Config) -> HTMLResponse:
    """Popup page for the outcome; the flow cookie is single use."""
    response = HTMLResponse(
        render_popup_response(payload, origin),
        headers={"Cache-Control": "no-store"},
    )
    response.delete_cookie(config.auth.flow_cookie_name, path=FLOW_COOKIE_PATH)
    return response


def _check_flow(
    claim: FlowClaim | None,
    provider: str,
    mode: FlowMode,
    state: str | None,
) -> FlowClaim:
    """Ensure the callback belongs to the flow this browser started."""
    if claim is None:
        raise InvalidStateError("Invalid or expired login attempt", code="oauth_state_invalid")
    if claim.provider != provider or claim.mode != mode:
        raise InvalidStateError("Login attempt does not match this callback", code="oauth_state_invalid")
    if not state or state != claim.nonce:
        raise InvalidStateError("Invalid state parameter", code="oauth_state_invalid")
    return claim


def _check_provider_response(code: str | None, error: str | None, error_description: str | None) -> str:
    if error:
        logger.warning("OAuth error: %s - %s", error, error_description)
        raise AuthorizationError(error_description or error, code="provider_denied")
    if not code:
        raise ValidationError("Authorization code not provided", field="code", code="missing_code")
    return code


async def _start_flow(
    provider: str,
    origin: str | None,
    auth_token: str | None,
    reauthorize: bool,
    config: Config,
    handler: InitiateLoginHandler,
    token_service: TokenService,
) -> Response:
    captured_origin = normalize_origin(origin)
    try:
        result = await handler.run(
            InitiateLogin(
                provider=provider,
                callback_url=config.callback_url(provider, reauthorize=reauthorize),
                origin=captured_origin,
                account_id=_session_account_id(token_service, auth_token),
                reauthorize=reauthorize,
            )
        )
    except IdlinkError as e:
        logger.warning("OAuth start rejected: provider=%s, error=%s", provider, e.message)
        return _popup(error_payload(e), captured_origin, config)

    logger.info("OAuth flow initiated: provider=%s, reauthorize=%s", provider, reauthorize)
    response = RedirectResponse(url=result.authorization_url, status_code=302)
    response.set_cookie(
        config.auth.flow_cookie_name,
        result.flow_token,
        max_age=config.auth.flow_ttl_seconds,
        path=FLOW_COOKIE_PATH,
        secure=config.auth.cookie_secure,
        httponly=True,
        samesite="lax",
    )
    return response


@router.get("/methods", response_model=AuthMethodsResponse)
async def list_auth_methods(
    current_user: FromDishka[CurrentUser],
    ledger: FromDishka[AuthMethodLedger],
) -> AuthMethodsResponse:
    """List the provider identities linked to the signed-in account."""
    auth_methods = await ledger.list(current_user.account_id)
    return AuthMethodsResponse(
        auth_methods=[AuthMethodView.from_auth_method(m) for m in auth_methods]
    )


@router.get("/{provider}")
async def initiate_login(
    provider: str,
    config: FromDishka[Config],
    handler: FromDishka[InitiateLoginHandler],
    token_service: FromDishka[TokenService],
    origin: Annotated[str | None, Query()] = None,
    auth_token: Annotated[str | None, Query()] = None,
) -> Response:
    """Start a login, or link the provider when `auth_token` identifies a session."""
    return await _start_flow(provider, origin, auth_token, False, config, handler, token_service)


@router.get("/{provider}/callback")
async def handle_oauth_callback(
    request: Request,
    provider: str,
    config: FromDishka[Config],
    handler: FromDishka[CompleteOAuthHandler],
    token_service: FromDishka[TokenService],
    code: Annotated[str | None, Query()] = None,
    state: Annotated[str | None, Query()] = None,
    error: Annotated[str | None, Query()] = None,
    error_description: Annotated[str | None, Query()] = None,
) -> Response:
    """Complete the login and post the outcome to the opener.

    Posts `{authToken}` when the identity resolved to an account,
    `{authMethods}` when it was linked to the signed-in account, or `{error}`.
    """
    claim = token_service.verify_flow_token(request.cookies.get(config.auth.flow_cookie_name))
    origin = claim.origin if claim else None

    try:
        claim = _check_flow(claim, provider, "authenticate", state)
        code = _check_provider_response(code, error, error_description)
        result = await handler.run(
            CompleteOAuth(
                provider=provider,
                code=code,
                callback_url=config.callback_url(provider),
                session_account_id=claim.account_id,
            )
        )
    except IdlinkError as e:
        logger.warning("OAuth callback failed: provider=%s, error=%s", provider, e.message)
        return _popup(error_payload(e), origin, config)
    except Exception:
        logger.exception("OAuth callback failed: provider=%s", provider)
        return _popup(error_payload(GENERIC_FAILURE), origin, config)

    if result.session_linked:
        payload: dict[str, Any] = {
            "authMethods": [m.model_dump(mode="json") for m in result.auth_methods]
        }
    else:
        payload = {"authToken": result.auth_token}
    return _popup(payload, origin, config)


@router.get("/{provider}/authz")
async def initiate_reauthorization(
    provider: str,
    config: FromDishka[Config],
    handler: FromDishka[InitiateLoginHandler],
    token_service: FromDishka[TokenService],
    origin: Annotated[str | None, Query()] = None,
    auth_token: Annotated[str | None, Query()] = None,
) -> Response:
    """Start re-authorization of a provider already linked to the session account."""
    return await _start_flow(provider, origin, auth_token, True, config, handler, token_service)


@router.get("/{provider}/authz/callback")
async def handle_reauthorization_callback(
    request: Request,
    provider: str,
    config: FromDishka[Config],
    handler: FromDishka[CompleteReauthorizationHandler],
    token_service: FromDishka[TokenService],
    code: Annotated[str | None, Query()] = None,
    state: Annotated[str | None, Query()] = None,
    error: Annotated[str | None, Query()] = None,
    error_description: Annotated[str | None, Query()] = None,
) -> Response:
    """Complete re-authorization and post `{accessToken}` (or `{error}`) to the opener."""
    claim = token_service.verify_flow_token(request.cookies.get(config.auth.flow_cookie_name))
    origin = claim.origin if claim else None

    try:
        claim = _check_flow(claim, provider, "reauthorize", state)
        code = _check_provider_response(code, error, error_description)
        result = await handler.run(
            CompleteReauthorization(
                provider=provider,
                code=code,
                callback_url=config.callback_url(provider, reauthorize=True),
                session_account_id=claim.account_id,
            )
        )
    except IdlinkError as e:
        logger.warning("Re-authorization failed: provider=%s, error=%s", provider, e.message)
        return _popup(error_payload(e), origin, config)
    except Exception:
        logger.exception("Re-authorization failed: provider=%s", provider)
        return _popup(error_payload(GENERIC_FAILURE), origin, config)

    payload: dict[str, Any] = {"accessToken": result.access_token}
    if result.error:
        payload["error"] = result.error
    return _popup(payload, origin, config)
