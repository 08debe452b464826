import json
from http.cookies import SimpleCookie
from typing import AsyncGenerator, Dict, Generator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import AsyncClient, ASGITransport
from starlette.websockets import WebSocketState

from travel_desk.core.config import Settings
from travel_desk.database import init_storage
from travel_desk.database.message_log import MessageLog
from travel_desk.main import create_app
from travel_desk.schemas.chat import ChatMessage
from travel_desk.schemas.user import Identity
from travel_desk.utils.auth import get_password_hash
from travel_desk.websockets.connection_manager import ConnectionRegistry
from travel_desk.websockets.handlers import ChatMessageHandler


# 테스트용 계정 (비밀번호는 모두 동일)
TEST_PASSWORD = "secret123!"
TEST_USERS = {
    "alice": {"displayName": "Alice", "email": "alice@example.com", "role": "owner"},
    "bob": {"displayName": "Bob", "email": "bob@example.com", "role": "operator"},
}


@pytest.fixture(scope="session")
def password_hash() -> str:
    """bcrypt 해시는 느리므로 세션당 한 번만 생성"""
    return get_password_hash(TEST_PASSWORD)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """임시 디렉토리를 쓰는 테스트 설정"""
    return Settings(
        data_dir=tmp_path / "data",
        log_dir=tmp_path / "logs",
        configure_logging=False,
        log_to_file=False,
        metrics_enabled=False,
        chat_log_fsync=False,
        secret_key="test-secret-key",
        bootstrap_owner_username=None,
        bootstrap_owner_password=None,
    )


@pytest.fixture
def seeded_users(test_settings, password_hash) -> Dict[str, dict]:
    """users.json 에 테스트 계정 기록"""
    users = {
        username: {"password": password_hash, **data}
        for username, data in TEST_USERS.items()
    }
    test_settings.data_dir.mkdir(parents=True, exist_ok=True)
    test_settings.users_path.write_text(json.dumps(users), encoding="utf-8")
    return users


@pytest.fixture
def test_app(test_settings, seeded_users) -> FastAPI:
    return create_app(test_settings)


@pytest.fixture
def client(test_app) -> Generator[TestClient, None, None]:
    """lifespan 까지 실행되는 동기 테스트 클라이언트 (WebSocket 테스트용)"""
    with TestClient(test_app) as test_client:
        yield test_client


@pytest_asyncio.fixture
async def async_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """테스트용 비동기 HTTP 클라이언트"""
    await init_storage(test_app.state.user_store, test_app.state.message_log)

    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def alice() -> Identity:
    return Identity(username="alice", display_name="Alice", role="owner")


@pytest.fixture
def bob() -> Identity:
    return Identity(username="bob", display_name="Bob", role="operator")


def session_headers(app: FastAPI, identity: Identity) -> Dict[str, str]:
    """세션을 만들고 해당 세션 쿠키 헤더를 반환"""
    sessions = app.state.sessions
    token = sessions.create(identity)
    return {"cookie": f"{sessions.cookie_name}={token}"}


def extract_cookie(response, name: str) -> str:
    """Set-Cookie 헤더에서 쿠키 값 추출"""
    cookie = SimpleCookie()
    for header in response.headers.get_list("set-cookie"):
        cookie.load(header)
    return cookie[name].value


def write_chat_log(settings: Settings, count: int):
    """채팅 로그 파일에 count 개의 메시지 기록"""
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    with open(settings.chat_history_path, "w", encoding="utf-8") as f:
        for i in range(count):
            message = ChatMessage(
                id=f"msg-{i}",
                sender="Alice",
                role="owner",
                text=f"message {i}",
                timestamp="2024-01-01T00:00:00.000Z"
            )
            f.write(message.model_dump_json() + "\n")


# =============================================================================
# 가짜 WebSocket (단위 테스트용)
# =============================================================================

class FakeWebSocket:
    """send_text / close 만 흉내내는 WebSocket"""

    def __init__(self, fail_on_send: bool = False):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.fail_on_send = fail_on_send
        self.sent = []
        self.close_code = None
        self.on_send = None

    async def send_text(self, data: str):
        if self.fail_on_send:
            raise RuntimeError('Cannot call "send" once a close message has been sent.')
        if self.on_send:
            self.on_send()
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000):
        self.close_code = code
        self.application_state = WebSocketState.DISCONNECTED

    def mark_closed(self):
        self.client_state = WebSocketState.DISCONNECTED

    def frames(self, frame_type: str):
        return [frame for frame in self.sent if frame["type"] == frame_type]


@pytest.fixture
def fake_websocket():
    return FakeWebSocket


@pytest.fixture
def message_log(tmp_path) -> MessageLog:
    log = MessageLog(tmp_path / "chat_history.jsonl", fsync=False)
    log.ensure_exists()
    return log


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def chat_handler(registry, message_log) -> ChatMessageHandler:
    return ChatMessageHandler(registry, message_log)


def pytest_configure(config):
    """pytest 설정"""
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )
