"""Realtime event envelopes.

Every frame on the socket is a JSON object ``{"event": <name>, "data": {...}}``.
Client and server events are separate unions discriminated on ``event`` so a
frame is validated once, at the boundary, and handlers receive typed data.
"""
import json
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .schemas import MessageOut, UserId


# Client -> server


class OtherUserData(BaseModel):
    other_user_id: UserId


class SendMessageData(BaseModel):
    receiver_id: UserId
    content: str


class MarkReadData(BaseModel):
    sender_id: UserId


class TypingData(BaseModel):
    receiver_id: UserId


class JoinConversation(BaseModel):
    event: Literal["join_conversation"]
    data: OtherUserData


class LeaveConversation(BaseModel):
    event: Literal["leave_conversation"]
    data: OtherUserData


class SendMessage(BaseModel):
    event: Literal["send_message"]
    data: SendMessageData


class MarkRead(BaseModel):
    event: Literal["mark_read"]
    data: MarkReadData


class Typing(BaseModel):
    event: Literal["typing"]
    data: TypingData


class StopTyping(BaseModel):
    event: Literal["stop_typing"]
    data: TypingData


ClientEvent = Annotated[
    Union[JoinConversation, LeaveConversation, SendMessage, MarkRead, Typing, StopTyping],
    Field(discriminator="event"),
]

_client_event_adapter = TypeAdapter(ClientEvent)


def parse_client_event(raw: Optional[str]) -> ClientEvent:
    """Decode one inbound frame, raising ``ValidationError`` if it is unusable.

    ``raw`` is None for binary frames, which the protocol does not use.
    """
    if not isinstance(raw, str):
        raise ValidationError("Only text frames are accepted")
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Malformed frame") from exc
    if not isinstance(payload, dict) or "event" not in payload:
        raise ValidationError("Frame must be an object with an 'event' field")
    try:
        return _client_event_adapter.validate_python(payload)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ValidationError(f"Invalid {payload.get('event')!s} event: {location} {first['msg']}") from exc


# Server -> client


class SenderInfo(BaseModel):
    id: int
    name: str


class NotificationData(BaseModel):
    message: MessageOut
    sender: SenderInfo


class ReadReceiptData(BaseModel):
    sender_id: int
    receiver_id: int
    count: int


class UserRef(BaseModel):
    user_id: int


class StatusData(BaseModel):
    userId: int
    status: Literal["online", "offline"]


class ErrorData(BaseModel):
    message: str


class NewMessage(BaseModel):
    event: Literal["new_message"] = "new_message"
    data: MessageOut


class MessageNotification(BaseModel):
    event: Literal["message_notification"] = "message_notification"
    data: NotificationData


class MessagesRead(BaseModel):
    event: Literal["messages_read"] = "messages_read"
    data: ReadReceiptData


class UserTyping(BaseModel):
    event: Literal["user_typing"] = "user_typing"
    data: UserRef


class UserStopTyping(BaseModel):
    event: Literal["user_stop_typing"] = "user_stop_typing"
    data: UserRef


class UserStatus(BaseModel):
    event: Literal["user_status"] = "user_status"
    data: StatusData


class Error(BaseModel):
    event: Literal["error"] = "error"
    data: ErrorData


ServerEvent = Annotated[
    Union[NewMessage, MessageNotification, MessagesRead, UserTyping, UserStopTyping, UserStatus, Error],
    Field(discriminator="event"),
]


def error_event(message: str) -> Error:
    return Error(data=ErrorData(message=message))


def to_frame(event: BaseModel) -> dict:
    return event.model_dump(mode="json")
