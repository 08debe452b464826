import asyncio
import uuid
from typing import List, Optional, Set, Union

from fastapi import WebSocket, status
from pydantic import ValidationError
from starlette.websockets import WebSocketDisconnect

from travel_desk.core.errors import StorageException
from travel_desk.core.logging import get_logger, log_websocket_event
from travel_desk.database.message_log import MessageLog
from travel_desk.schemas.chat import (
    ChatMessage,
    ErrorFrame,
    HistoryFrame,
    InboundChatFrame,
    MessageFrame
)
from travel_desk.schemas.user import Identity
from travel_desk.utils.time_utils import utc_now_iso
from travel_desk.websockets.connection_manager import (
    CLOSE_TIMEOUT_SECONDS,
    ConnectionRecord,
    ConnectionRegistry
)

logger = get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 50


class ChatMessageHandler:
    """
    채팅 연결 수명주기와 메시지 브로드캐스트를 처리합니다.

    - 연결 직후 최근 메시지 히스토리 전송
    - 수신 메시지 저장 후 모든 열린 연결(보낸 사람 포함)에 전달
    - 연결 해제 시 레지스트리에서 제거

    메시지 저장과 각 연결 outbox 에 넣는 작업, 그리고 새 연결의 등록과 히스토리
    적재는 같은 락 안에서 실행됩니다. 소켓 전송은 락 밖의 연결별 writer 태스크가
    담당하므로 느린 연결이 다른 사용자의 전송이나 새 연결을 막지 않습니다.
    모든 연결은 로그 순서대로 메시지를 받고, 새 연결은 히스토리와 실시간 메시지를
    중복이나 누락 없이 이어 받습니다.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        message_log: MessageLog,
        history_limit: int = DEFAULT_HISTORY_LIMIT
    ):
        self.registry = registry
        self.message_log = message_log
        self.history_limit = history_limit
        self._publish_lock = asyncio.Lock()
        self._background: Set[asyncio.Task] = set()

    async def handle_connect(self, websocket: WebSocket, identity: Identity) -> str:
        """
        accept 된 연결을 등록하고 히스토리 프레임을 전송 대기열에 넣습니다.

        등록 후 실패하면 등록을 되돌리고 예외를 다시 발생시킵니다.

        Returns:
            str: 연결 ID
        """
        async with self._publish_lock:
            connection_id = self.registry.register(websocket, identity)
            record = self.registry.get(connection_id)
            try:
                history = await self._load_history(connection_id)
                record.enqueue(HistoryFrame(data=history).model_dump_json())
                record.writer = asyncio.create_task(self._write_loop(record))
            except BaseException:
                self.registry.unregister(connection_id)
                raise

        log_websocket_event(logger, "connected", identity.username, connection_id)
        return connection_id

    async def _load_history(self, connection_id: str) -> List[ChatMessage]:
        try:
            return await self.message_log.read_last(self.history_limit)
        except Exception as e:
            # 히스토리 없이도 실시간 채팅은 가능
            logger.error(f"Failed to read chat history for connection {connection_id}: {e}", exc_info=True)
            return []

    def handle_disconnect(self, connection_id: str):
        record = self.registry.unregister(connection_id)
        if record is not None:
            log_websocket_event(logger, "disconnected", record.identity.username, connection_id)

    async def handle_message(self, connection_id: str, raw: Union[str, bytes]) -> Optional[ChatMessage]:
        """
        수신 프레임을 처리합니다.

        형식이 잘못된 프레임은 로그만 남기고 버립니다 (연결은 유지, 에러 프레임 없음).
        로그 저장에 실패하면 브로드캐스트하지 않고 보낸 사람에게만 에러 프레임을 보냅니다.

        Returns:
            ChatMessage: 저장 및 전달된 메시지, 버려진 경우 None
        """
        record = self.registry.get(connection_id)
        if record is None:
            logger.error(f"Message received from unregistered connection {connection_id}")
            return None

        try:
            frame = InboundChatFrame.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(
                f"Dropping malformed chat frame from user {record.identity.username}",
                extra={
                    "event_type": "websocket_malformed_frame",
                    "connection_id": connection_id,
                    "errors": e.error_count()
                }
            )
            return None

        message = ChatMessage(
            id=str(uuid.uuid4()),
            sender=record.identity.display_name,
            role=record.identity.role,
            text=frame.text,
            timestamp=utc_now_iso()
        )

        async with self._publish_lock:
            try:
                await self.message_log.append(message)
            except StorageException as e:
                logger.error(f"Chat message from user {record.identity.username} was not saved: {e}", exc_info=True)
                self._deliver(record, ErrorFrame(
                    error_code="message_not_saved",
                    message="Message could not be saved and was not delivered."
                ).model_dump_json())
                return None

            queued = await self.broadcast(message)

        logger.info(f"Message {message.id} from user {record.identity.username} queued for {queued} connections")
        return message

    async def broadcast(self, message: ChatMessage) -> int:
        """열린 모든 연결의 outbox 에 메시지를 넣고 성공한 연결 수를 반환합니다."""
        payload = MessageFrame(data=message).model_dump_json()
        queued = 0

        async def deliver(record: ConnectionRecord):
            nonlocal queued
            if self._deliver(record, payload):
                queued += 1

        await self.registry.for_each_open(deliver)
        return queued

    async def flush(self):
        """현재 등록된 연결의 outbox 가 모두 전송될 때까지 대기"""
        await asyncio.gather(*(record.outbox.join() for record in self.registry.records()))

    def _deliver(self, record: ConnectionRecord, payload: str) -> bool:
        if record.id not in self.registry:
            return False
        if record.enqueue(payload):
            return True

        # outbox 가 가득 찬 연결은 따라오지 못하는 것으로 보고 끊음
        logger.warning(
            f"Dropping slow connection {record.id} ({record.identity.username}): "
            f"{record.outbox.qsize()} frames pending"
        )
        self.handle_disconnect(record.id)
        self._spawn(self._close(record, status.WS_1013_TRY_AGAIN_LATER))
        return False

    async def _write_loop(self, record: ConnectionRecord):
        """outbox 의 프레임을 순서대로 소켓에 씁니다. 전송 실패 시 연결을 해제합니다."""
        while True:
            payload = await record.outbox.get()
            try:
                await record.handle.send_text(payload)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                logger.warning(f"Failed to send to connection {record.id} ({record.identity.username}): {e}")
                self.handle_disconnect(record.id)
                return
            finally:
                record.outbox.task_done()

    async def _close(self, record: ConnectionRecord, code: int):
        try:
            await asyncio.wait_for(record.handle.close(code=code), timeout=CLOSE_TIMEOUT_SECONDS)
        except Exception as e:
            logger.warning(f"Failed to close connection {record.id}: {e}")

    def _spawn(self, coro):
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
