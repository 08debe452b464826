from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

OWNER_ROLE = "owner"


class Identity(BaseModel):
    """세션에 묶인 인증 사용자 정보 (연결 수명 동안 불변)"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    username: str = Field(..., description="사용자명 (고유 키)")
    display_name: str = Field(..., alias="displayName", description="표시명")
    role: str = Field(..., description="역할 (owner 또는 기타)")

    @property
    def is_owner(self) -> bool:
        return self.role == OWNER_ROLE


class UserRecord(BaseModel):
    """users.json 에 저장되는 사용자 레코드"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    password: str = Field(..., description="bcrypt 해시")
    display_name: str = Field(..., alias="displayName", description="표시명")
    email: Optional[str] = Field(None, description="이메일")
    role: str = Field(..., description="역할")

    def to_identity(self, username: str) -> Identity:
        return Identity(username=username, display_name=self.display_name, role=self.role)


class LoginRequest(BaseModel):
    """로그인 요청 스키마"""
    username: str = Field(..., min_length=1, max_length=50, description="사용자명")
    password: str = Field(..., min_length=1, description="비밀번호")
