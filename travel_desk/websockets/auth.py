from typing import Optional
from fastapi import WebSocket, status

from travel_desk.core.logging import get_logger, log_security_event
from travel_desk.schemas.user import Identity
from travel_desk.services.session_store import SessionStore

logger = get_logger(__name__)


async def authenticate_websocket(websocket: WebSocket, sessions: SessionStore) -> Optional[Identity]:
    """
    WebSocket 업그레이드 요청의 세션 쿠키를 검증하고 사용자를 반환합니다.

    인증에 실패하면 accept 전에 연결을 닫습니다. 핸드셰이크가 끝나지 않았으므로
    클라이언트는 어떤 메시지도 받지 못하고 업그레이드 자체가 거절됩니다.

    Args:
        websocket: 아직 accept 되지 않은 WebSocket 연결 객체
        sessions: 세션 저장소

    Returns:
        Identity: 인증된 사용자, 인증 실패 시 None
    """
    try:
        identity = await sessions.resolve_session(websocket)
    except Exception as e:
        logger.error(f"WebSocket session resolution error: {e}", exc_info=True)
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return None

    if identity is None:
        log_security_event(
            logger,
            "websocket_upgrade_rejected",
            severity="low",
            ip_address=websocket.client.host if websocket.client else None
        )
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None

    logger.info(f"WebSocket authentication successful for user: {identity.username}")
    return identity
