"""
Travel Desk 설정

환경 변수(.env 포함)를 통한 설정 관리
"""

from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()  # .env 파일 로드


class Settings(BaseSettings):
    """Travel Desk 설정"""

    # Application
    app_name: str = "travel-desk"
    version: str = "1.0.0"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 3000

    # Storage (flat files)
    data_dir: Path = Path("data")
    users_file: str = "users.json"
    chat_history_file: str = "chat_history.jsonl"
    chat_history_limit: int = 50
    chat_log_fsync: bool = True

    # Session cookie
    secret_key: str = "travel-desk-dev-secret-change-me"
    algorithm: str = "HS256"
    session_cookie_name: str = "travel_desk_sid"
    session_max_age_hours: int = 24

    # CORS
    cors_origins: List[str] = ["http://localhost:3000"]

    # Logging
    configure_logging: bool = True
    log_dir: Path = Path("logs")
    log_to_file: bool = True

    # Metrics
    metrics_enabled: bool = True

    # 최초 실행 시 생성할 owner 계정 (선택)
    bootstrap_owner_username: Optional[str] = None
    bootstrap_owner_password: Optional[str] = None
    bootstrap_owner_display_name: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"

    @property
    def users_path(self) -> Path:
        return self.data_dir / self.users_file

    @property
    def chat_history_path(self) -> Path:
        return self.data_dir / self.chat_history_file


settings = Settings()
