import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from travel_desk.api.dependencies import get_chat_handler, get_session_store
from travel_desk.services.session_store import SessionStore
from travel_desk.websockets.auth import authenticate_websocket
from travel_desk.websockets.handlers import ChatMessageHandler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["WebSocket"])


@router.websocket("/chat")
async def chat_websocket_endpoint(
    websocket: WebSocket,
    sessions: SessionStore = Depends(get_session_store),
    chat_handler: ChatMessageHandler = Depends(get_chat_handler)
):
    """
    사내 채팅 WebSocket 엔드포인트

    세션 쿠키로 인증된 사용자만 연결됩니다.
    연결 직후 {"type": "history"} 프레임을 한 번 받고,
    이후 {"text": "..."} 프레임을 보내면 모든 연결에 {"type": "message"} 로 전달됩니다.
    """
    # 1. 업그레이드 인증 (실패 시 accept 전에 종료)
    identity = await authenticate_websocket(websocket, sessions)
    if identity is None:
        return

    # 2. 핸드셰이크 완료
    await websocket.accept()

    connection_id = None
    try:
        # 3. 등록 및 히스토리 전송
        connection_id = await chat_handler.handle_connect(websocket, identity)

        # 4. 메시지 수신 루프
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is None:
                continue

            try:
                await chat_handler.handle_message(connection_id, raw)
            except Exception as e:
                # 한 메시지의 처리 오류가 연결이나 다른 사용자에게 번지지 않도록 함
                logger.error(f"Error processing message from user {identity.username}: {e}", exc_info=True)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for user {identity.username}")

    except Exception as e:
        logger.error(f"Unexpected error in WebSocket connection for user {identity.username}: {e}", exc_info=True)

    finally:
        # 5. 연결 해제 처리
        if connection_id is not None:
            chat_handler.handle_disconnect(connection_id)
