"""
사용자 저장소 (users.json 플랫 파일)

{username: {password, displayName, email, role}} 형태의 JSON 객체를 읽고 씁니다.
"""

import json
from pathlib import Path
from typing import Dict, Optional

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from travel_desk.core.errors import StorageException
from travel_desk.core.logging import get_logger
from travel_desk.schemas.user import UserRecord

logger = get_logger(__name__)


class UserStore:
    def __init__(self, path: Path):
        self.path = Path(path)

    def ensure_exists(self) -> bool:
        """파일이 없으면 빈 객체로 생성합니다. 새로 만든 경우 True."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self.path.exists():
            return False
        self.path.write_text("{}", encoding="utf-8")
        logger.info(f"Created missing user store: {self.path}")
        return True

    def is_available(self) -> bool:
        return self.path.is_file()

    async def load(self) -> Dict[str, UserRecord]:
        """모든 사용자 레코드 조회 (형식이 잘못된 레코드는 건너뜀)"""
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                content = await f.read()
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StorageException(str(self.path), "Failed to read user store") from e

        try:
            raw_users = json.loads(content or "{}")
        except json.JSONDecodeError as e:
            raise StorageException(str(self.path), "User store is not valid JSON") from e

        users: Dict[str, UserRecord] = {}
        for username, data in raw_users.items():
            try:
                users[username] = UserRecord.model_validate(data)
            except ValidationError:
                logger.warning(f"Skipping malformed user record: {username}")
        return users

    async def get(self, username: str) -> Optional[UserRecord]:
        users = await self.load()
        return users.get(username)

    async def save_all(self, users: Dict[str, UserRecord]) -> None:
        """전체 사용자 목록 저장 (임시 파일에 쓴 뒤 교체)"""
        payload = {
            username: record.model_dump(by_alias=True)
            for username, record in users.items()
        }
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(payload, ensure_ascii=False, indent=2))
            await aiofiles.os.replace(tmp_path, self.path)
        except OSError as e:
            raise StorageException(str(self.path), "Failed to write user store") from e

    async def add(self, username: str, record: UserRecord) -> None:
        users = await self.load()
        users[username] = record
        await self.save_all(users)
