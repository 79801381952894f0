"""Live connection handling: identity, rooms, presence and event relay.

Each socket is served by one task that reads a frame, handles it to completion and
only then reads the next, so one sender's messages are persisted and broadcast in
the order they were sent. Handlers of different connections interleave only at
store calls, which run on the thread pool. Emitting never suspends: events go
onto each target connection's outbox and a per-connection writer task drains it,
so every receiver sees events in the order they were emitted to it.
"""
import asyncio
import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from fastapi import APIRouter, Header, WebSocket, WebSocketDisconnect, status
from starlette.websockets import WebSocketState
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from . import store
from .config import MAX_ID, OUTBOX_LIMIT
from .errors import AuthError, ChatError
from .events import (
    MarkReadData,
    MessageNotification,
    MessagesRead,
    NewMessage,
    NotificationData,
    OtherUserData,
    ReadReceiptData,
    SenderInfo,
    ServerEvent,
    SendMessageData,
    StatusData,
    TypingData,
    UserRef,
    UserStatus,
    UserStopTyping,
    UserTyping,
    error_event,
    parse_client_event,
    to_frame,
)
from .logging_config import configure_logging
from .presence import PresenceRegistry
from ..shared.utils import personal_channel, room_key

router = APIRouter(tags=["realtime"])
logger = configure_logging()


class Connection:
    """One authenticated socket and the rooms it has joined."""

    def __init__(self, user_id: int, outbox_limit: int = OUTBOX_LIMIT):
        self.id = uuid.uuid4().hex
        self.user_id = user_id
        # Room of the thread currently on screen; only used to suppress notifications.
        self.current_chat: Optional[str] = None
        self.rooms: Set[str] = set()
        self.outbox: "asyncio.Queue[dict]" = asyncio.Queue(maxsize=outbox_limit)
        self.closed = False
        # Set once the writer can no longer keep up or has stopped.
        self.dropped = False

    def deliver(self, event: ServerEvent) -> None:
        if self.closed or self.dropped:
            return
        try:
            self.outbox.put_nowait(to_frame(event))
        except asyncio.QueueFull:
            logger.warning("WS_OUTBOX_FULL user_id=%s connection_id=%s", self.user_id, self.id)
            self.dropped = True

    async def pump(self, websocket: WebSocket) -> None:
        """Write queued frames until the connection is dropped, then close the socket."""
        try:
            while not self.dropped:
                frame = await self.outbox.get()
                await websocket.send_json(frame)
            if websocket.application_state == WebSocketState.CONNECTED:
                await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
        finally:
            self.dropped = True

    def __repr__(self) -> str:
        return f"Connection(id={self.id!r}, user_id={self.user_id})"


class SessionManager:
    """Owns room membership for every live connection and relays events between them."""

    def __init__(self, presence: PresenceRegistry, session_factory: sessionmaker):
        self.presence = presence
        self._session_factory = session_factory
        self._rooms: Dict[str, Set[Connection]] = {}
        self._handlers: Dict[str, Callable[[Connection, Any], Any]] = {
            "join_conversation": self.join_conversation,
            "leave_conversation": self.leave_conversation,
            "send_message": self.send_message,
            "mark_read": self.mark_read,
            "typing": self.typing,
            "stop_typing": self.stop_typing,
        }

    # -- lifecycle ---------------------------------------------------------

    @staticmethod
    def authenticate(raw_user_id: Optional[str]) -> int:
        """Return the connection's user id. The id is trusted as given."""
        if raw_user_id is None or not str(raw_user_id).strip():
            raise AuthError("User ID is required")
        try:
            user_id = int(raw_user_id)
        except (TypeError, ValueError):
            raise AuthError("User ID must be an integer") from None
        if not 0 < user_id <= MAX_ID:
            raise AuthError("User ID is out of range")
        return user_id

    def connect(self, user_id: int) -> Connection:
        connection = Connection(user_id)
        self.join(connection, personal_channel(user_id))
        self.presence.mark_online(user_id, connection)
        logger.info("WS_CONNECT user_id=%s connection_id=%s", user_id, connection.id)
        self._broadcast_status(user_id)
        return connection

    def disconnect(self, connection: Connection) -> None:
        if connection.closed:
            return
        connection.closed = True
        for room in list(connection.rooms):
            self.leave(connection, room)
        connection.current_chat = None
        self.presence.mark_offline(connection.user_id, connection)
        logger.info("WS_DISCONNECT user_id=%s connection_id=%s", connection.user_id, connection.id)
        self._broadcast_status(connection.user_id)

    def shutdown(self) -> None:
        for connection in self.presence.all_connections():
            connection.closed = True
        self._rooms.clear()
        self.presence.clear()

    # -- rooms -------------------------------------------------------------

    def join(self, connection: Connection, room: str) -> None:
        self._rooms.setdefault(room, set()).add(connection)
        connection.rooms.add(room)

    def leave(self, connection: Connection, room: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._rooms[room]
        connection.rooms.discard(room)

    def members(self, room: str) -> List[Connection]:
        return list(self._rooms.get(room, ()))

    def emit(self, rooms: Iterable[str], event: ServerEvent, exclude: Optional[Connection] = None) -> int:
        """Deliver ``event`` once to every connection in any of ``rooms``."""
        targets: Set[Connection] = set()
        for room in rooms:
            targets.update(self._rooms.get(room, ()))
        targets.discard(exclude)
        for connection in targets:
            connection.deliver(event)
        return len(targets)

    def _broadcast_status(self, user_id: int) -> None:
        state = "online" if self.presence.is_online(user_id) else "offline"
        event = UserStatus(data=StatusData(userId=user_id, status=state))
        for connection in self.presence.all_connections():
            connection.deliver(event)

    # -- inbound events ----------------------------------------------------

    async def handle(self, connection: Connection, raw: Optional[str]) -> None:
        """Process one inbound frame. Failures are reported to this connection only."""
        try:
            event = parse_client_event(raw)
            await self._handlers[event.event](connection, event.data)
        except ChatError as exc:
            logger.warning(
                "WS_EVENT_FAILED user_id=%s connection_id=%s error=%r",
                connection.user_id,
                connection.id,
                exc.message,
            )
            connection.deliver(error_event(exc.message))
        except Exception:
            logger.exception("WS_HANDLER_CRASHED user_id=%s connection_id=%s", connection.user_id, connection.id)
            connection.deliver(error_event("Internal server error"))

    async def join_conversation(self, connection: Connection, data: OtherUserData) -> None:
        room = room_key(connection.user_id, data.other_user_id)
        self.join(connection, room)
        connection.current_chat = room
        logger.info("WS_JOIN user_id=%s room=%s", connection.user_id, room)

    async def leave_conversation(self, connection: Connection, data: OtherUserData) -> None:
        room = room_key(connection.user_id, data.other_user_id)
        self.leave(connection, room)
        connection.current_chat = None
        logger.info("WS_LEAVE user_id=%s room=%s", connection.user_id, room)

    async def send_message(self, connection: Connection, data: SendMessageData) -> None:
        sender_id, receiver_id = connection.user_id, data.receiver_id
        # Nothing is emitted unless the message was stored.
        message = await self._call_store(store.persist_message, sender_id, receiver_id, data.content)

        room = room_key(sender_id, receiver_id)
        self.emit(
            [room, personal_channel(sender_id), personal_channel(receiver_id)],
            NewMessage(data=message),
        )

        receiver_conns = self.presence.connections(receiver_id)
        if receiver_conns and all(conn.current_chat != room for conn in receiver_conns):
            notification = MessageNotification(
                data=NotificationData(message=message, sender=SenderInfo(id=sender_id, name=message.sender_name))
            )
            self.emit([personal_channel(receiver_id)], notification)

    async def mark_read(self, connection: Connection, data: MarkReadData) -> None:
        receiver_id = connection.user_id
        count = await self._call_store(store.mark_read, receiver_id, data.sender_id)
        receipt = ReadReceiptData(sender_id=data.sender_id, receiver_id=receiver_id, count=count)
        self.emit([room_key(receiver_id, data.sender_id)], MessagesRead(data=receipt))

    async def typing(self, connection: Connection, data: TypingData) -> None:
        event = UserTyping(data=UserRef(user_id=connection.user_id))
        self.emit([room_key(connection.user_id, data.receiver_id)], event, exclude=connection)

    async def stop_typing(self, connection: Connection, data: TypingData) -> None:
        event = UserStopTyping(data=UserRef(user_id=connection.user_id))
        self.emit([room_key(connection.user_id, data.receiver_id)], event, exclude=connection)

    async def _call_store(self, func: Callable[..., Any], *args: Any) -> Any:
        def work():
            with self._session_factory() as db:
                return func(db, *args)

        return await run_in_threadpool(work)


@router.websocket("/ws")
async def chat_socket(
    websocket: WebSocket,
    user_id: Optional[str] = None,
    x_user_id: Optional[str] = Header(default=None),
):
    manager: SessionManager = websocket.app.state.sessions
    try:
        identity = manager.authenticate(user_id if user_id is not None else x_user_id)
    except AuthError as exc:
        logger.warning("WS_REJECTED reason=%r", exc.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    connection = manager.connect(identity)
    writer = asyncio.create_task(connection.pump(websocket))
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE), message.get("reason"))
            await manager.handle(connection, message.get("text"))
    except WebSocketDisconnect as exc:
        logger.info("WS_CLOSED user_id=%s code=%s", identity, exc.code)
    finally:
        manager.disconnect(connection)
        writer.cancel()
        for result in await asyncio.gather(writer, return_exceptions=True):
            if isinstance(result, Exception):
                logger.warning("WS_WRITER_FAILED user_id=%s error=%r", identity, result)
