"""
채팅 메시지 로그 (append-only 플랫 파일)

한 줄에 하나의 JSON 객체(JSON Lines)로 메시지를 저장합니다.
파일 순서가 곧 채팅 히스토리의 순서이며, 이 로그가 히스토리의 유일한 원본입니다.
"""

import asyncio
import os
from pathlib import Path
from typing import Iterable, List

import aiofiles
from pydantic import ValidationError

from travel_desk.core.errors import StorageException
from travel_desk.core.logging import get_logger
from travel_desk.schemas.chat import ChatMessage

logger = get_logger(__name__)

READ_BLOCK_SIZE = 64 * 1024


class MessageLog:
    def __init__(self, path: Path, fsync: bool = True):
        self.path = Path(path)
        self.fsync = fsync
        # append 호출 순서 = 파일 기록 순서
        self._lock = asyncio.Lock()

    def ensure_exists(self) -> None:
        """로그 파일이 없으면 빈 파일로 생성"""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.touch()
            logger.info(f"Created missing chat log: {self.path}")

    def is_available(self) -> bool:
        return self.path.is_file() and os.access(self.path, os.R_OK | os.W_OK)

    async def append(self, message: ChatMessage) -> None:
        """메시지를 로그 끝에 추가합니다. 반환 시점에 디스크 기록이 끝나 있습니다."""
        line = message.model_dump_json() + "\n"

        async with self._lock:
            try:
                async with aiofiles.open(self.path, "a", encoding="utf-8") as f:
                    await f.write(line)
                    await f.flush()
                    if self.fsync:
                        loop = asyncio.get_running_loop()
                        await loop.run_in_executor(None, os.fsync, f.fileno())
            except OSError as e:
                raise StorageException(str(self.path), "Failed to append chat message") from e

    async def read_last(self, n: int) -> List[ChatMessage]:
        """
        최근 n개의 메시지를 로그 순서(오래된 것 먼저)로 반환합니다.

        파일 끝에서부터 블록 단위로 읽으므로 로그 크기와 관계없이 필요한 만큼만 읽습니다.
        손상된 줄(잘못된 JSON, UTF-8 이 아닌 바이트 등)은 건너뛰고 경고 로그를 남깁니다.
        """
        if n <= 0:
            return []

        messages: List[ChatMessage] = []

        async with self._lock:
            try:
                async with aiofiles.open(self.path, "rb") as f:
                    await f.seek(0, os.SEEK_END)
                    position = await f.tell()
                    remainder = b""

                    while position > 0 and len(messages) < n:
                        size = min(READ_BLOCK_SIZE, position)
                        position -= size
                        await f.seek(position)
                        chunk = await f.read(size)

                        lines = (chunk + remainder).split(b"\n")
                        # 블록 첫 줄은 앞 블록과 이어질 수 있음
                        remainder = lines.pop(0)
                        self._collect(reversed(lines), messages, n)

                    if position == 0 and len(messages) < n:
                        self._collect([remainder], messages, n)
            except FileNotFoundError:
                return []
            except OSError as e:
                raise StorageException(str(self.path), "Failed to read chat log") from e

        messages.reverse()
        return messages

    def _collect(self, lines: Iterable[bytes], messages: List[ChatMessage], n: int):
        """최신 줄부터 파싱해 messages 에 n개가 될 때까지 추가"""
        for raw in lines:
            if len(messages) >= n:
                return
            raw = raw.strip()
            if not raw:
                continue
            try:
                messages.append(ChatMessage.model_validate_json(raw.decode("utf-8")))
            except (UnicodeDecodeError, ValidationError):
                logger.warning(f"Skipping corrupt line in chat log {self.path}")
