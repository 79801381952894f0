"""Shared utility functions."""
from typing import Union

UserId = Union[int, str]


def room_key(user_a: UserId, user_b: UserId) -> str:
    """Return the room name shared by two users.

    Ids are compared numerically, so both participants compute the same key
    whichever side opens the conversation: room_key(2, 10) == room_key(10, 2) == "2:10".
    """
    first, second = sorted((int(user_a), int(user_b)))
    return f"{first}:{second}"


def personal_channel(user_id: UserId) -> str:
    """Return the channel holding every live connection of one user."""
    return f"user:{int(user_id)}"
