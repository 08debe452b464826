from typing import List, Literal
from pydantic import BaseModel, ConfigDict, Field, StrictStr


class ChatMessage(BaseModel):
    """채팅 로그에 저장되고 브로드캐스트되는 메시지"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="메시지 고유 ID")
    sender: str = Field(..., description="보낸 사람 표시명")
    role: str = Field(..., description="보낸 사람 역할")
    text: str = Field(..., description="메시지 내용")
    timestamp: str = Field(..., description="ISO-8601 생성 시각")


class InboundChatFrame(BaseModel):
    """클라이언트가 보내는 메시지 프레임: {"text": "..."}"""
    text: StrictStr


class HistoryFrame(BaseModel):
    type: Literal["history"] = "history"
    data: List[ChatMessage]


class MessageFrame(BaseModel):
    type: Literal["message"] = "message"
    data: ChatMessage


class ErrorFrame(BaseModel):
    """보낸 사람에게만 전달되는 에러 프레임"""
    type: Literal["error"] = "error"
    error_code: str
    message: str
