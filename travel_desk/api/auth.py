from fastapi import APIRouter, Depends, Request, Response

from travel_desk.api.dependencies import (
    get_current_identity,
    get_session_store,
    get_user_store
)
from travel_desk.core.errors import invalid_credentials_error
from travel_desk.core.logging import get_logger, log_authentication_event
from travel_desk.database.user_store import UserStore
from travel_desk.schemas.user import Identity, LoginRequest
from travel_desk.services import auth_service
from travel_desk.services.session_store import SessionStore

logger = get_logger(__name__)

router = APIRouter(tags=["Authentication"])


@router.post("/login", response_model=Identity)
async def login(
    credentials: LoginRequest,
    response: Response,
    sessions: SessionStore = Depends(get_session_store),
    user_store: UserStore = Depends(get_user_store)
) -> Identity:
    """
    사용자 로그인

    성공 시 세션을 만들고 서명된 세션 쿠키를 설정합니다.
    """
    identity = await auth_service.authenticate_user(
        user_store,
        credentials.username,
        credentials.password
    )
    if identity is None:
        log_authentication_event(logger, "login", username=credentials.username, success=False)
        raise invalid_credentials_error()

    token = sessions.create(identity)
    response.set_cookie(
        key=sessions.cookie_name,
        value=token,
        max_age=sessions.max_age_seconds,
        httponly=True,
        samesite="lax",
        secure=False
    )

    log_authentication_event(logger, "login", username=identity.username)
    return identity


@router.get("/logout")
async def logout(
    request: Request,
    response: Response,
    sessions: SessionStore = Depends(get_session_store)
) -> dict:
    """
    사용자 로그아웃

    이미 열린 채팅 연결은 연결 시점의 사용자 정보로 계속 유지됩니다.
    """
    token = request.cookies.get(sessions.cookie_name)
    identity = sessions.get_identity(token)
    sessions.destroy(token)
    response.delete_cookie(sessions.cookie_name)

    if identity:
        log_authentication_event(logger, "logout", username=identity.username)

    return {"message": "Successfully logged out"}


@router.get("/api/user/me", response_model=Identity)
async def get_current_user(
    identity: Identity = Depends(get_current_identity)
) -> Identity:
    """현재 로그인한 사용자 정보"""
    return identity
