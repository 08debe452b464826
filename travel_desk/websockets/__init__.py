"""
WebSocket 실시간 채팅 모듈

주요 구성 요소:
- connection_manager: 열린 연결과 사용자 매핑 (ConnectionRegistry)
- auth: 업그레이드 요청의 세션 인증
- handlers: 히스토리 전송, 메시지 저장 및 브로드캐스트
"""

from .connection_manager import ConnectionRegistry, ConnectionRecord
from .auth import authenticate_websocket
from .handlers import ChatMessageHandler

__all__ = [
    "ConnectionRegistry",
    "ConnectionRecord",
    "authenticate_websocket",
    "ChatMessageHandler"
]
