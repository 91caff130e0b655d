"""Local username/password session route."""

import logging

from dishka import FromDishka
from dishka.integrations.fastapi import DishkaRoute
from fastapi import APIRouter
from pydantic import BaseModel, Field

from idlink.domain.auth.command.session import PasswordLogin, PasswordLoginHandler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/session", tags=["Session"], route_class=DishkaRoute)


class SessionRequest(BaseModel):
    """Request body for password login. `username` may also be an email."""

    username: str
    password: str


class SessionResponse(BaseModel):
    auth_token: str = Field(serialization_alias="authToken")
    account_id: str = Field(serialization_alias="accountId")
    username: str


@router.post("", response_model=SessionResponse, response_model_by_alias=True)
async def create_session(
    body: SessionRequest,
    handler: FromDishka[PasswordLoginHandler],
) -> SessionResponse:
    """Sign in with username (or email) and password."""
    result = await handler.run(PasswordLogin(username=body.username, password=body.password))
    logger.info("Password login: account_id=%s", result.account_id)
    return SessionResponse(
        auth_token=result.auth_token,
        account_id=result.account_id,
        username=result.username,
    )
