import logging
from typing import Optional

from travel_desk.core.config import Settings
from travel_desk.schemas.user import OWNER_ROLE, UserRecord
from travel_desk.utils.auth import get_password_hash_async
from .message_log import MessageLog
from .user_store import UserStore

logger = logging.getLogger(__name__)


async def init_storage(
    user_store: UserStore,
    message_log: MessageLog,
    config: Optional[Settings] = None
):
    """필수 저장소 파일 생성 및 (선택) owner 계정 생성"""
    try:
        created = user_store.ensure_exists()
        message_log.ensure_exists()

        if created and config and config.bootstrap_owner_username and config.bootstrap_owner_password:
            await seed_owner(
                user_store,
                config.bootstrap_owner_username,
                config.bootstrap_owner_password,
                config.bootstrap_owner_display_name or config.bootstrap_owner_username
            )

        logger.info("Storage initialized successfully")
    except Exception as e:
        logger.error(f"Storage initialization failed: {e}")
        raise


async def seed_owner(user_store: UserStore, username: str, password: str, display_name: str):
    """owner 계정 생성"""
    record = UserRecord(
        password=await get_password_hash_async(password),
        display_name=display_name,
        role=OWNER_ROLE
    )
    await user_store.add(username, record)
    logger.info(f"Bootstrap owner account created: {username}")


def check_storage_health(user_store: UserStore, message_log: MessageLog):
    """저장소 파일 상태 확인"""
    users_ok = user_store.is_available()
    chat_log_ok = message_log.is_available()

    return {
        "users": users_ok,
        "chat_log": chat_log_ok,
        "overall": users_ok and chat_log_ok
    }

__all__ = [
    "MessageLog",
    "UserStore",
    "init_storage",
    "seed_owner",
    "check_storage_health"
]
