"""
서버 측 세션 저장소

세션 ID → 인증 사용자(Identity) 매핑을 프로세스 메모리에 보관합니다.
클라이언트에는 세션 ID 를 서명한 토큰만 쿠키로 전달됩니다.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

from starlette.requests import HTTPConnection

from travel_desk.core.config import Settings
from travel_desk.core.logging import get_logger
from travel_desk.schemas.user import Identity
from travel_desk.utils.auth import create_session_token, decode_session_token
from travel_desk.utils.time_utils import utc_now

logger = get_logger(__name__)


@dataclass
class SessionRecord:
    identity: Identity
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utc_now()) >= self.expires_at


class SessionStore:
    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        cookie_name: str = "travel_desk_sid",
        max_age: timedelta = timedelta(hours=24)
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.cookie_name = cookie_name
        self.max_age = max_age
        self._sessions: Dict[str, SessionRecord] = {}

    @classmethod
    def from_settings(cls, config: Settings) -> "SessionStore":
        return cls(
            secret_key=config.secret_key,
            algorithm=config.algorithm,
            cookie_name=config.session_cookie_name,
            max_age=timedelta(hours=config.session_max_age_hours)
        )

    @property
    def max_age_seconds(self) -> int:
        return int(self.max_age.total_seconds())

    def create(self, identity: Identity) -> str:
        """
        새 세션을 만들고 쿠키에 넣을 서명된 토큰을 반환합니다.

        재사용되지 않은 만료 세션이 쌓이지 않도록 만료된 세션을 함께 정리합니다.
        """
        self.purge_expired()
        session_id = secrets.token_urlsafe(32)
        self._sessions[session_id] = SessionRecord(
            identity=identity,
            expires_at=utc_now() + self.max_age
        )
        return create_session_token(session_id, self.secret_key, self.algorithm, self.max_age)

    def get_identity(self, token: Optional[str]) -> Optional[Identity]:
        """쿠키 토큰으로 세션의 사용자 조회 (없거나 만료/위조 시 None)"""
        if not token:
            return None

        session_id = decode_session_token(token, self.secret_key, self.algorithm)
        if not session_id:
            return None

        record = self._sessions.get(session_id)
        if record is None:
            return None

        if record.is_expired():
            self._sessions.pop(session_id, None)
            return None

        return record.identity

    async def resolve_session(self, connection: HTTPConnection) -> Optional[Identity]:
        """HTTP 요청 또는 WebSocket 업그레이드 요청의 쿠키로 사용자 조회"""
        return self.get_identity(connection.cookies.get(self.cookie_name))

    def destroy(self, token: Optional[str]) -> bool:
        if not token:
            return False
        session_id = decode_session_token(token, self.secret_key, self.algorithm)
        if not session_id:
            return False
        return self._sessions.pop(session_id, None) is not None

    def purge_expired(self) -> int:
        now = utc_now()
        expired = [sid for sid, record in self._sessions.items() if record.is_expired(now)]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info(f"Purged {len(expired)} expired sessions")
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)
