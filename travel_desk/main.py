"""
Travel Desk - FastAPI Application

여행사 내부 운영 백엔드의 로그인 세션과 실시간 사내 채팅을 담당합니다.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from travel_desk import api
from travel_desk.core.config import Settings, settings as default_settings
from travel_desk.core.logging import get_logger, setup_logging
from travel_desk.database import MessageLog, UserStore, init_storage
from travel_desk.middleware.error_handler import ErrorHandlerMiddleware, create_http_exception_handler
from travel_desk.middleware.logging_middleware import LoggingMiddleware
from travel_desk.services.session_store import SessionStore
from travel_desk.websockets.connection_manager import ConnectionRegistry
from travel_desk.websockets.handlers import ChatMessageHandler

logger = get_logger(__name__)


def create_app(config: Optional[Settings] = None) -> FastAPI:
    """설정을 받아 구성 요소를 만들고 app.state 에 연결한 FastAPI 앱을 생성합니다."""
    config = config or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        if config.configure_logging:
            setup_logging(config)
        logger.info(f"{config.app_name} starting up...")
        await init_storage(app.state.user_store, app.state.message_log, config)

        yield

        # Shutdown
        logger.info(f"{config.app_name} shutting down...")
        await app.state.registry.close_all()

    app = FastAPI(
        title=config.app_name,
        version=config.version,
        lifespan=lifespan
    )

    app.state.settings = config
    app.state.sessions = SessionStore.from_settings(config)
    app.state.user_store = UserStore(config.users_path)
    app.state.message_log = MessageLog(config.chat_history_path, fsync=config.chat_log_fsync)
    app.state.registry = ConnectionRegistry()
    app.state.chat_handler = ChatMessageHandler(
        app.state.registry,
        app.state.message_log,
        history_limit=config.chat_history_limit
    )

    app.add_middleware(ErrorHandlerMiddleware, debug=config.debug)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StarletteHTTPException, create_http_exception_handler())

    # Include routers
    api.include_routers(app, "api", api.__path__)

    # Prometheus metrics
    if config.metrics_enabled:
        Instrumentator().instrument(app).expose(app)

    @app.get("/")
    async def root():
        return {
            "service": config.app_name,
            "version": config.version,
            "status": "running"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "travel_desk.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug
    )
