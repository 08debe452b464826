from fastapi import APIRouter, Depends, HTTPException

from travel_desk.api.dependencies import (
    get_message_log,
    get_registry,
    get_settings,
    get_user_store
)
from travel_desk.core.config import Settings
from travel_desk.database import check_storage_health
from travel_desk.database.message_log import MessageLog
from travel_desk.database.user_store import UserStore
from travel_desk.utils.time_utils import utc_now_iso
from travel_desk.websockets.connection_manager import ConnectionRegistry

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(
    config: Settings = Depends(get_settings),
    user_store: UserStore = Depends(get_user_store),
    message_log: MessageLog = Depends(get_message_log),
    registry: ConnectionRegistry = Depends(get_registry)
):
    """Application health check endpoint"""
    storage_health = check_storage_health(user_store, message_log)

    return {
        "status": "healthy" if storage_health["overall"] else "unhealthy",
        "timestamp": utc_now_iso(),
        "storage": {
            "users": "available" if storage_health["users"] else "unavailable",
            "chat_log": "available" if storage_health["chat_log"] else "unavailable"
        },
        "connections": len(registry),
        "online_users": len({identity.username for identity in registry.identities()}),
        "service": config.app_name
    }


@router.get("/health/ready")
async def readiness_check(
    user_store: UserStore = Depends(get_user_store),
    message_log: MessageLog = Depends(get_message_log)
):
    """Readiness probe endpoint"""
    storage_health = check_storage_health(user_store, message_log)

    if not storage_health["overall"]:
        raise HTTPException(
            status_code=503,
            detail="Service not ready - storage files unavailable"
        )

    return {"status": "ready"}


@router.get("/health/live")
async def liveness_check():
    """Liveness probe endpoint"""
    return {"status": "alive", "timestamp": utc_now_iso()}
