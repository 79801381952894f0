"""Shared data transfer object helpers."""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class UserDTO:
    id: int
    username: str
    role: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserDTO":
        return cls(id=data["id"], username=data["username"], role=data.get("role", "guest"))


@dataclass
class MessageDTO:
    id: int
    sender_id: int
    receiver_id: int
    sender_name: str
    receiver_name: str
    content: str
    is_read: bool
    created_at: datetime

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MessageDTO":
        return cls(
            id=data["id"],
            sender_id=data["sender_id"],
            receiver_id=data["receiver_id"],
            sender_name=data.get("sender_name", ""),
            receiver_name=data.get("receiver_name", ""),
            content=data["content"],
            is_read=bool(data.get("is_read", False)),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass
class ConversationDTO:
    other_user_id: int
    other_user_name: str
    unread_count: int
    last_message: Optional[MessageDTO] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationDTO":
        last = data.get("last_message")
        return cls(
            other_user_id=data["other_user_id"],
            other_user_name=data["other_user_name"],
            unread_count=data.get("unread_count", 0),
            last_message=MessageDTO.from_dict(last) if last else None,
        )
