# chatrooms/models/models.py
from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

T = TypeVar("T")


def _strip_required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


# ============================================================================
# USERS / AUTH
# ============================================================================

class RegisterRequest(BaseModel):
    name: str = Field(..., max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        return _strip_required(value)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    created_at: datetime


class TokenResponse(BaseModel):
    user: UserOut
    access_token: str
    token_type: str = "Bearer"


# ============================================================================
# CHATROOMS
# ============================================================================

class CreateChatroomRequest(BaseModel):
    name: str = Field(..., max_length=255)
    max_members: int = Field(..., ge=1)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        return _strip_required(value)


class Chatroom(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    max_members: int
    created_at: datetime
    updated_at: datetime


class StatusMessage(BaseModel):
    message: str


# ============================================================================
# MESSAGES
# ============================================================================

class SendMessageRequest(BaseModel):
    """Form fields of POST /messages, minus the uploaded file."""

    chatroom_id: int = Field(..., ge=1)
    message_text: Optional[str] = None


class Message(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    chatroom_id: int
    user_id: int
    message_text: Optional[str] = None
    attachment_path: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class MessageSentEvent(BaseModel):
    """Payload broadcast on chatroom.<id> for every new message."""

    message: Optional[str] = None
    user: str
    created_at: str


# ============================================================================
# PAGINATION
# ============================================================================

class Page(BaseModel, Generic[T]):
    data: List[T]
    current_page: int
    per_page: int
    total: int
    last_page: int
