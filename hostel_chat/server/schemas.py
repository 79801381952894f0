"""Pydantic schemas for request and response bodies."""
from datetime import datetime
from typing import Annotated, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .config import MAX_ID

UserId = Annotated[int, Field(gt=0, le=MAX_ID)]


class UserCreate(BaseModel):
    username: str = Field(..., min_length=1)
    email: Optional[str] = None
    role: Literal["guest", "host", "admin"] = "guest"


class UserOut(BaseModel):
    id: int
    username: str
    role: str

    model_config = ConfigDict(from_attributes=True)


class OnlineUsersResponse(BaseModel):
    count: int
    user_ids: List[int]


class MessageCreate(BaseModel):
    sender_id: UserId
    receiver_id: UserId
    content: str


class MarkReadRequest(BaseModel):
    receiver_id: UserId
    sender_id: UserId


class MessageOut(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    sender_name: str
    receiver_name: str
    content: str
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MessageSendResponse(BaseModel):
    message: str
    data: MessageOut


class MessageHistoryResponse(BaseModel):
    count: int
    messages: List[MessageOut]


class ConversationSummary(BaseModel):
    other_user_id: int
    other_user_name: str
    last_message: MessageOut
    unread_count: int


class ConversationListResponse(BaseModel):
    count: int
    conversations: List[ConversationSummary]


class UnreadCountsResponse(BaseModel):
    unreadCounts: Dict[int, int] = Field(default_factory=dict)


class CountResponse(BaseModel):
    message: str
    count: int
