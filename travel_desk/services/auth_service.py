from typing import Optional

from travel_desk.core.logging import get_logger
from travel_desk.database.user_store import UserStore
from travel_desk.schemas.user import Identity
from travel_desk.utils.auth import verify_password_async

logger = get_logger(__name__)


async def authenticate_user(
    user_store: UserStore,
    username: str,
    password: str
) -> Optional[Identity]:
    """사용자명/비밀번호 인증. 성공 시 세션에 담을 Identity 반환"""
    record = await user_store.get(username)
    if record is None:
        return None

    try:
        verified = await verify_password_async(password, record.password)
    except ValueError:
        # 저장된 값이 bcrypt 해시가 아님
        logger.warning(f"Unrecognized password hash for user {username}")
        return None

    if not verified:
        return None

    return record.to_identity(username)
