import json

import pytest

from travel_desk.core.config import Settings
from travel_desk.core.errors import StorageException
from travel_desk.database import MessageLog, UserStore, check_storage_health, init_storage
from travel_desk.schemas.user import OWNER_ROLE, UserRecord
from travel_desk.utils.auth import verify_password
from travel_desk.utils.time_utils import to_iso_z, utc_now_iso


@pytest.fixture
def user_store(tmp_path) -> UserStore:
    return UserStore(tmp_path / "data" / "users.json")


class TestUserStore:
    """users.json 저장소 테스트"""

    def test_ensure_exists_creates_empty_object(self, user_store):
        assert user_store.ensure_exists() is True
        assert json.loads(user_store.path.read_text(encoding="utf-8")) == {}

        # 이미 있으면 다시 만들지 않음
        assert user_store.ensure_exists() is False

    @pytest.mark.asyncio
    async def test_load_missing_file(self, user_store):
        assert await user_store.load() == {}

    @pytest.mark.asyncio
    async def test_add_and_get(self, user_store, password_hash):
        user_store.ensure_exists()
        record = UserRecord(password=password_hash, display_name="Carol", role="agent")

        await user_store.add("carol", record)
        loaded = await user_store.get("carol")

        assert loaded == record
        stored = json.loads(user_store.path.read_text(encoding="utf-8"))
        assert stored["carol"]["displayName"] == "Carol"
        assert not user_store.path.with_suffix(".json.tmp").exists()

    @pytest.mark.asyncio
    async def test_malformed_record_skipped(self, user_store, password_hash):
        user_store.ensure_exists()
        user_store.path.write_text(json.dumps({
            "carol": {"password": password_hash, "displayName": "Carol", "role": "agent"},
            "broken": {"displayName": "No Password"}
        }), encoding="utf-8")

        users = await user_store.load()

        assert list(users) == ["carol"]

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self, user_store):
        user_store.ensure_exists()
        user_store.path.write_text("[1, 2", encoding="utf-8")

        with pytest.raises(StorageException):
            await user_store.load()


class TestInitStorage:
    """저장소 초기화 테스트"""

    @pytest.mark.asyncio
    async def test_creates_missing_files(self, tmp_path):
        user_store = UserStore(tmp_path / "users.json")
        message_log = MessageLog(tmp_path / "chat_history.jsonl", fsync=False)

        await init_storage(user_store, message_log)

        health = check_storage_health(user_store, message_log)
        assert health == {"users": True, "chat_log": True, "overall": True}

    @pytest.mark.asyncio
    async def test_bootstrap_owner_seeded_once(self, tmp_path):
        config = Settings(
            data_dir=tmp_path,
            bootstrap_owner_username="boss",
            bootstrap_owner_password="boss-pass",
            bootstrap_owner_display_name="The Boss"
        )
        user_store = UserStore(config.users_path)
        message_log = MessageLog(config.chat_history_path, fsync=False)

        await init_storage(user_store, message_log, config)

        owner = await user_store.get("boss")
        assert owner.role == OWNER_ROLE
        assert owner.display_name == "The Boss"
        assert verify_password("boss-pass", owner.password)

        # 이미 있는 사용자 파일에는 다시 추가하지 않음
        await user_store.save_all({})
        await init_storage(user_store, message_log, config)
        assert await user_store.load() == {}

    def test_health_reports_missing_files(self, tmp_path):
        user_store = UserStore(tmp_path / "users.json")
        message_log = MessageLog(tmp_path / "chat_history.jsonl")

        health = check_storage_health(user_store, message_log)

        assert health["overall"] is False


class TestTimeUtils:
    def test_iso_z_format(self):
        from datetime import datetime, timezone

        dt = datetime(2024, 5, 6, 7, 8, 9, 123456, tzinfo=timezone.utc)
        assert to_iso_z(dt) == "2024-05-06T07:08:09.123Z"

    def test_now_iso_is_utc(self):
        assert utc_now_iso().endswith("Z")
