"""Console client for the hostel messaging service."""
import sys
from typing import Dict, Optional

import requests

from .api import APIClient
from ..shared.dto import UserDTO


class ChatClient:
    """Interactive console client for browsing conversations and sending messages."""

    def __init__(self, server_url: str):
        self.api = APIClient(server_url)
        self.current_user: Optional[UserDTO] = None

    def choose_identity(self) -> bool:
        users = self.list_users()
        name = input("Your username (new names are registered): ").strip()
        user = next((u for u in users.values() if u.username == name), None)
        try:
            self.current_user = user or self.api.create_user(name)
        except requests.RequestException as exc:
            print(f"Could not register: {exc}")
            return False
        print(f"Hello, {self.current_user.username}!")
        return True

    def list_users(self) -> Dict[int, UserDTO]:
        try:
            users = {u.id: u for u in self.api.list_users()}
            online = set(self.api.online_users())
        except requests.RequestException as exc:
            print(f"Could not fetch users: {exc}")
            return {}
        for u in users.values():
            marker = " (online)" if u.id in online else ""
            print(f"- {u.id}: {u.username} [{u.role}]{marker}")
        return users

    def inbox(self) -> None:
        try:
            conversations = self.api.get_conversations(self.current_user.id)
        except requests.RequestException as exc:
            print(f"Could not fetch conversations: {exc}")
            return
        if not conversations:
            print("No conversations yet.")
        for conv in conversations:
            badge = f" [{conv.unread_count} unread]" if conv.unread_count else ""
            preview = conv.last_message.content[:40] if conv.last_message else ""
            print(f"- {conv.other_user_name} (#{conv.other_user_id}){badge}: {preview}")

    def open_chat(self) -> None:
        users = self.list_users()
        name = input("Chat with (username): ").strip()
        peer = next((u for u in users.values() if u.username == name), None)
        if not peer:
            print("User not found.")
            return
        self._show_history(peer)
        while True:
            print("\nChat commands: [s]end, [r]efresh, [d]elete conversation, [b]ack")
            cmd = input("> ").strip().lower()
            if cmd == "b":
                break
            if cmd == "s":
                self._send(peer, input("Message: "))
            if cmd == "r":
                self._show_history(peer)
            if cmd == "d" and input("Delete every message with this user? [y/N] ").strip().lower() == "y":
                try:
                    count = self.api.delete_conversation(self.current_user.id, peer.id)
                    print(f"Deleted {count} messages.")
                except requests.RequestException as exc:
                    print(f"Could not delete conversation: {exc}")

    def _send(self, peer: UserDTO, text: str) -> None:
        try:
            self.api.send_message(self.current_user.id, peer.id, text)
            print("Message sent.")
        except requests.RequestException as exc:
            print(f"Failed to send message: {exc}")

    def _show_history(self, peer: UserDTO) -> None:
        try:
            messages = self.api.get_messages(self.current_user.id, peer.id)
        except requests.RequestException as exc:
            print(f"Could not fetch messages: {exc}")
            return
        for msg in messages:
            who = "(you)" if msg.sender_id == self.current_user.id else msg.sender_name
            print(f"[{msg.created_at:%H:%M}] {who}: {msg.content}")
        if not messages:
            print("No messages yet. Start the conversation!")


def main():
    print("Hostel Chat Client")
    server_url = input("Server URL (e.g. http://127.0.0.1:8000): ").strip()
    client = ChatClient(server_url)

    while client.current_user is None:
        if not client.choose_identity():
            sys.exit(1)

    while True:
        print("\nMenu: [u]sers, [i]nbox, [c]hat, [q]uit")
        choice = input("> ").strip().lower()
        if choice == "q":
            sys.exit(0)
        if choice == "u":
            client.list_users()
        if choice == "i":
            client.inbox()
        if choice == "c":
            client.open_chat()


if __name__ == "__main__":
    main()
