import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from fastapi import WebSocket, status
from starlette.websockets import WebSocketState

from travel_desk.core.logging import get_logger
from travel_desk.schemas.user import Identity

logger = get_logger(__name__)

DEFAULT_OUTBOX_SIZE = 256
CLOSE_TIMEOUT_SECONDS = 5


@dataclass
class ConnectionRecord:
    """
    업그레이드가 승인된 WebSocket 연결 하나

    보낼 프레임은 outbox 에 쌓이고 연결별 writer 태스크가 순서대로 전송합니다.
    """
    id: str
    handle: WebSocket
    identity: Identity
    outbox: asyncio.Queue = field(default_factory=asyncio.Queue, repr=False)
    writer: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def is_open(self) -> bool:
        return (
            self.handle.client_state == WebSocketState.CONNECTED
            and self.handle.application_state == WebSocketState.CONNECTED
        )

    def enqueue(self, payload: str) -> bool:
        """outbox 가 가득 찼으면 False"""
        try:
            self.outbox.put_nowait(payload)
            return True
        except asyncio.QueueFull:
            return False

    def stop(self):
        """남은 프레임을 버리고 writer 태스크를 취소합니다."""
        while not self.outbox.empty():
            self.outbox.get_nowait()
            self.outbox.task_done()

        if self.writer and not self.writer.done() and self.writer is not asyncio.current_task():
            self.writer.cancel()


class ConnectionRegistry:
    """
    현재 열린 채팅 연결과 각 연결에 묶인 사용자를 보관합니다.

    모든 변경(register/unregister)은 await 없이 한 번에 끝나므로
    단일 이벤트 루프 안에서 브로드캐스트 반복과 안전하게 교차합니다.
    """

    def __init__(self, outbox_size: int = DEFAULT_OUTBOX_SIZE):
        self.outbox_size = outbox_size
        # {connection_id: ConnectionRecord}
        self._connections: Dict[str, ConnectionRecord] = {}

    def register(self, handle: WebSocket, identity: Identity) -> str:
        """새 연결을 등록하고 연결 ID 를 반환합니다."""
        connection_id = uuid.uuid4().hex
        while connection_id in self._connections:
            connection_id = uuid.uuid4().hex

        self._connections[connection_id] = ConnectionRecord(
            id=connection_id,
            handle=handle,
            identity=identity,
            outbox=asyncio.Queue(maxsize=self.outbox_size)
        )
        return connection_id

    def unregister(self, connection_id: str) -> Optional[ConnectionRecord]:
        """연결을 제거하고 writer 를 멈춥니다. 이미 제거된 경우 None."""
        record = self._connections.pop(connection_id, None)
        if record is not None:
            record.stop()
        return record

    def get(self, connection_id: str) -> Optional[ConnectionRecord]:
        return self._connections.get(connection_id)

    def records(self) -> List[ConnectionRecord]:
        return list(self._connections.values())

    async def for_each_open(self, fn: Callable[[ConnectionRecord], Awaitable[None]]) -> int:
        """
        호출 시점의 연결 스냅샷을 순회하며 열린 연결마다 fn 을 실행합니다.

        순회 중 해제되었거나 이미 닫힌 연결은 건너뜁니다.

        Returns:
            int: fn 이 실행된 연결 수
        """
        visited = 0
        for record in self.records():
            if record.id not in self._connections or not record.is_open:
                continue
            await fn(record)
            visited += 1
        return visited

    def identities(self) -> List[Identity]:
        return [record.identity for record in self._connections.values()]

    async def close_all(self, code: int = status.WS_1001_GOING_AWAY):
        """모든 연결을 닫고 레지스트리를 비웁니다 (프로세스 종료 시)."""
        records = self.records()
        self._connections.clear()

        for record in records:
            record.stop()
            if not record.is_open:
                continue
            try:
                await asyncio.wait_for(record.handle.close(code=code), timeout=CLOSE_TIMEOUT_SECONDS)
            except Exception as e:
                logger.warning(f"Failed to close connection {record.id} on shutdown: {e}")

        if records:
            logger.info(f"Closed {len(records)} chat connections on shutdown")

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._connections
