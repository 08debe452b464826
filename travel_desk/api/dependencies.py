"""
API Dependencies

app.state 에 보관된 구성 요소를 요청/WebSocket 핸들러에 주입합니다.
"""

from fastapi import Depends
from starlette.requests import HTTPConnection

from travel_desk.core.config import Settings
from travel_desk.core.errors import not_authenticated_error
from travel_desk.database.message_log import MessageLog
from travel_desk.database.user_store import UserStore
from travel_desk.schemas.user import Identity
from travel_desk.services.session_store import SessionStore
from travel_desk.websockets.connection_manager import ConnectionRegistry
from travel_desk.websockets.handlers import ChatMessageHandler


def get_settings(connection: HTTPConnection) -> Settings:
    return connection.app.state.settings


def get_session_store(connection: HTTPConnection) -> SessionStore:
    return connection.app.state.sessions


def get_user_store(connection: HTTPConnection) -> UserStore:
    return connection.app.state.user_store


def get_message_log(connection: HTTPConnection) -> MessageLog:
    return connection.app.state.message_log


def get_registry(connection: HTTPConnection) -> ConnectionRegistry:
    return connection.app.state.registry


def get_chat_handler(connection: HTTPConnection) -> ChatMessageHandler:
    return connection.app.state.chat_handler


async def get_current_identity(
    connection: HTTPConnection,
    sessions: SessionStore = Depends(get_session_store)
) -> Identity:
    """
    세션 쿠키로 현재 로그인한 사용자를 조회합니다.

    Raises:
        AuthenticationException: 세션이 없거나 만료된 경우
    """
    identity = await sessions.resolve_session(connection)
    if identity is None:
        raise not_authenticated_error()

    # 로깅 미들웨어에서 사용자 기록
    connection.state.identity = identity
    return identity
