import pytest
from httpx import AsyncClient
from fastapi import status

from travel_desk.services import auth_service
from travel_desk.utils.auth import verify_password, get_password_hash
from conftest import TEST_PASSWORD, extract_cookie


class TestAuthUtils:
    """인증 유틸리티 테스트"""

    def test_password_hashing(self):
        """비밀번호 해싱 테스트"""
        password = "testpass123!"
        hashed = get_password_hash(password)

        assert hashed != password
        assert verify_password(password, hashed)
        assert not verify_password("wrongpass", hashed)


class TestAuthService:
    """사용자 인증 서비스 테스트"""

    @pytest.mark.asyncio
    async def test_authenticate_user_success(self, test_app, seeded_users):
        identity = await auth_service.authenticate_user(test_app.state.user_store, "alice", TEST_PASSWORD)

        assert identity is not None
        assert identity.username == "alice"
        assert identity.display_name == "Alice"
        assert identity.role == "owner"
        assert identity.is_owner

    @pytest.mark.asyncio
    async def test_authenticate_user_wrong_password(self, test_app, seeded_users):
        assert await auth_service.authenticate_user(test_app.state.user_store, "alice", "wrong") is None

    @pytest.mark.asyncio
    async def test_authenticate_unknown_user(self, test_app, seeded_users):
        assert await auth_service.authenticate_user(test_app.state.user_store, "nobody", TEST_PASSWORD) is None

    @pytest.mark.asyncio
    async def test_authenticate_user_with_plaintext_password_record(self, test_app, test_settings):
        """해시가 아닌 비밀번호가 저장된 레코드는 인증 실패"""
        test_settings.users_path.write_text(
            '{"legacy": {"password": "plain", "displayName": "Legacy", "role": "operator"}}',
            encoding="utf-8"
        )

        assert await auth_service.authenticate_user(test_app.state.user_store, "legacy", "plain") is None


class TestAuthAPI:
    """인증 API 테스트"""

    @pytest.mark.asyncio
    async def test_login_success(self, async_client: AsyncClient, test_settings):
        """로그인 성공 시 세션 쿠키와 사용자 정보 반환"""
        response = await async_client.post("/login", json={"username": "alice", "password": TEST_PASSWORD})

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"username": "alice", "displayName": "Alice", "role": "owner"}

        token = extract_cookie(response, test_settings.session_cookie_name)
        assert token
        set_cookie = response.headers["set-cookie"].lower()
        assert "httponly" in set_cookie
        assert "password" not in response.text

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, async_client: AsyncClient):
        """잘못된 비밀번호 로그인 실패 테스트"""
        response = await async_client.post("/login", json={"username": "alice", "password": "wrong"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        data = response.json()
        assert data["error"] == "authentication_error"
        assert "invalid" in data["message"].lower()
        assert "set-cookie" not in response.headers

    @pytest.mark.asyncio
    async def test_login_missing_fields(self, async_client: AsyncClient):
        response = await async_client.post("/login", json={"username": "alice"})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.asyncio
    async def test_me_without_session(self, async_client: AsyncClient):
        """세션 없이 현재 사용자 조회 실패"""
        response = await async_client.get("/api/user/me")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"] == "authentication_error"

    @pytest.mark.asyncio
    async def test_me_with_session(self, async_client: AsyncClient, test_settings):
        login = await async_client.post("/login", json={"username": "bob", "password": TEST_PASSWORD})
        token = extract_cookie(login, test_settings.session_cookie_name)

        response = await async_client.get(
            "/api/user/me",
            headers={"cookie": f"{test_settings.session_cookie_name}={token}"}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"username": "bob", "displayName": "Bob", "role": "operator"}

    @pytest.mark.asyncio
    async def test_logout_destroys_session(self, async_client: AsyncClient, test_app, test_settings):
        """로그아웃 후 같은 쿠키로 접근 불가"""
        login = await async_client.post("/login", json={"username": "alice", "password": TEST_PASSWORD})
        token = extract_cookie(login, test_settings.session_cookie_name)
        headers = {"cookie": f"{test_settings.session_cookie_name}={token}"}

        response = await async_client.get("/logout", headers=headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"message": "Successfully logged out"}
        assert len(test_app.state.sessions) == 0

        async_client.cookies.clear()
        me = await async_client.get("/api/user/me", headers=headers)
        assert me.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_logout_without_session(self, async_client: AsyncClient):
        response = await async_client.get("/logout")

        assert response.status_code == status.HTTP_200_OK
