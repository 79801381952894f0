"""HTTP API client for the messaging server."""
from typing import Any, Dict, List, Optional

import requests

from ..shared.dto import ConversationDTO, MessageDTO, UserDTO


class APIClient:
    def __init__(self, base_url: str, session: Optional[requests.Session] = None, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.http = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        resp = self.http.request(method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs)
        resp.raise_for_status()
        return resp.json()

    def create_user(self, username: str, role: str = "guest", email: Optional[str] = None) -> UserDTO:
        data = self._request("POST", "/users", json={"username": username, "role": role, "email": email})
        return UserDTO.from_dict(data)

    def list_users(self) -> List[UserDTO]:
        return [UserDTO.from_dict(u) for u in self._request("GET", "/users")]

    def online_users(self) -> List[int]:
        return self._request("GET", "/users/online")["user_ids"]

    def send_message(self, sender_id: int, receiver_id: int, content: str) -> MessageDTO:
        payload = {"sender_id": sender_id, "receiver_id": receiver_id, "content": content}
        return MessageDTO.from_dict(self._request("POST", "/messages/send", json=payload)["data"])

    def get_messages(self, user_id: int, other_user_id: int, limit: int = 50, offset: int = 0) -> List[MessageDTO]:
        """Load one page of history. The server marks the page's thread read for ``user_id``."""
        params = {"sender_id": user_id, "receiver_id": other_user_id, "limit": limit, "offset": offset}
        return [MessageDTO.from_dict(m) for m in self._request("GET", "/messages", params=params)["messages"]]

    def get_conversations(self, user_id: int) -> List[ConversationDTO]:
        data = self._request("GET", "/messages/conversations", params={"user_id": user_id})
        return [ConversationDTO.from_dict(c) for c in data["conversations"]]

    def get_unread_counts(self, user_id: int) -> Dict[int, int]:
        data = self._request("GET", "/messages/unread", params={"user_id": user_id})
        return {int(k): v for k, v in data["unreadCounts"].items()}

    def mark_read(self, receiver_id: int, sender_id: int) -> int:
        payload = {"receiver_id": receiver_id, "sender_id": sender_id}
        return self._request("PUT", "/messages/read", json=payload)["count"]

    def delete_conversation(self, user1_id: int, user2_id: int) -> int:
        params = {"user1_id": user1_id, "user2_id": user2_id}
        return self._request("DELETE", "/messages/conversation", params=params)["count"]
