"""Message persistence and the per-user conversation index.

Every function takes an open SQLAlchemy session as its first argument and returns
pydantic schemas, so results stay usable after the session is closed. Database
failures are rolled back, logged and re-raised as ``StorageError``; nothing in
here ever reports partial success.
"""
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from sqlalchemy import case, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from . import schemas
from .config import DEFAULT_PAGE_SIZE, MAX_ID, MAX_PAGE_SIZE
from .errors import NotFoundError, StorageError, ValidationError
from .logging_config import configure_logging
from .models import Message, User, utcnow

logger = configure_logging()


@contextmanager
def _storage(db: Session, action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("STORAGE_FAILURE action=%r error=%s", action, exc)
        raise StorageError(f"Failed to {action}") from exc


def _require_ids(*ids: Optional[int]) -> None:
    if any(not user_id for user_id in ids):
        raise ValidationError("User IDs are required")
    if any(not 0 < user_id <= MAX_ID for user_id in ids):
        raise ValidationError("User IDs must be positive 64-bit integers")


def _pair_filter(user_a: int, user_b: int):
    return or_(
        (Message.sender_id == user_a) & (Message.receiver_id == user_b),
        (Message.sender_id == user_b) & (Message.receiver_id == user_a),
    )


def _with_names(query):
    return query.options(joinedload(Message.sender), joinedload(Message.receiver))


def to_message_out(message: Message) -> schemas.MessageOut:
    return schemas.MessageOut(
        id=message.id,
        sender_id=message.sender_id,
        receiver_id=message.receiver_id,
        sender_name=message.sender.username,
        receiver_name=message.receiver.username,
        content=message.content,
        is_read=bool(message.is_read),
        created_at=message.created_at,
    )


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def _get_user_row(db: Session, user_id: int) -> User:
    if not 0 < user_id <= MAX_ID:
        raise NotFoundError(f"User {user_id} not found")
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    return user


def get_user(db: Session, user_id: int) -> schemas.UserOut:
    with _storage(db, "retrieve user"):
        return schemas.UserOut.model_validate(_get_user_row(db, user_id))


def list_users(db: Session) -> List[schemas.UserOut]:
    with _storage(db, "retrieve users"):
        return [schemas.UserOut.model_validate(u) for u in db.query(User).order_by(User.id).all()]


def create_user(db: Session, username: str, email: Optional[str] = None, role: str = "guest") -> schemas.UserOut:
    if not username or not username.strip():
        raise ValidationError("Username is required")
    user = User(username=username.strip(), email=email, role=role)
    try:
        with _storage(db, "create user"):
            db.add(user)
            db.commit()
    except StorageError as exc:
        if isinstance(exc.__cause__, IntegrityError):
            raise ValidationError("Username or email already exists") from exc
        raise
    logger.info("USER_CREATED user_id=%s username=%s role=%s", user.id, user.username, user.role)
    return schemas.UserOut.model_validate(user)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


def persist_message(
    db: Session,
    sender_id: int,
    receiver_id: int,
    content: Optional[str],
    created_at: Optional[datetime] = None,
) -> schemas.MessageOut:
    """Store a message and return it with both display names attached.

    Content is stored verbatim. ``created_at`` defaults to the current server time.
    """
    if not sender_id or not receiver_id or content is None:
        raise ValidationError("Sender ID, receiver ID, and content are required")
    if not content.strip():
        raise ValidationError("Message content cannot be empty")
    _require_ids(sender_id, receiver_id)

    with _storage(db, "send message"):
        sender = _get_user_row(db, sender_id)
        receiver = _get_user_row(db, receiver_id)
        message = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            is_read=False,
            created_at=created_at or utcnow(),
        )
        db.add(message)
        db.commit()

    # Names come from the rows read before the insert, so once the commit has
    # succeeded nothing else can fail and the caller never retries a stored message.
    result = schemas.MessageOut(
        id=message.id,
        sender_id=sender_id,
        receiver_id=receiver_id,
        sender_name=sender.username,
        receiver_name=receiver.username,
        content=message.content,
        is_read=False,
        created_at=message.created_at,
    )

    logger.info("MESSAGE_SENT sender_id=%s receiver_id=%s message_id=%s", sender_id, receiver_id, result.id)
    return result


def get_message(db: Session, message_id: int) -> schemas.MessageOut:
    if not 0 < message_id <= MAX_ID:
        raise NotFoundError(f"Message {message_id} not found")
    with _storage(db, "retrieve message"):
        message = _with_names(db.query(Message)).filter(Message.id == message_id).first()
        if not message:
            raise NotFoundError(f"Message {message_id} not found")
        return to_message_out(message)


def fetch_history(
    db: Session,
    user_a: int,
    user_b: int,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> List[schemas.MessageOut]:
    """Return one page of the pair's messages, oldest first."""
    _require_ids(user_a, user_b)
    if limit < 1 or not 0 <= offset <= MAX_ID:
        raise ValidationError("limit must be positive and offset must not be negative")
    limit = min(limit, MAX_PAGE_SIZE)

    with _storage(db, "retrieve messages"):
        rows = (
            _with_names(db.query(Message))
            .filter(_pair_filter(user_a, user_b))
            .order_by(Message.created_at.asc(), Message.id.asc())
            .limit(limit)
            .offset(offset)
            .all()
        )
        return [to_message_out(m) for m in rows]


def mark_read(db: Session, receiver_id: int, sender_id: int) -> int:
    """Flag every unread message from ``sender_id`` to ``receiver_id`` as read."""
    _require_ids(receiver_id, sender_id)
    with _storage(db, "mark messages as read"):
        count = (
            db.query(Message)
            .filter(
                Message.receiver_id == receiver_id,
                Message.sender_id == sender_id,
                Message.is_read.is_(False),
            )
            .update({Message.is_read: True}, synchronize_session=False)
        )
        db.commit()
    if count:
        logger.info("MESSAGES_READ receiver_id=%s sender_id=%s count=%s", receiver_id, sender_id, count)
    return count


def unread_counts(db: Session, user_id: int) -> Dict[int, int]:
    """Map each sender to the number of unread messages they sent ``user_id``."""
    _require_ids(user_id)
    with _storage(db, "retrieve unread count"):
        rows = (
            db.query(Message.sender_id, func.count(Message.id))
            .filter(Message.receiver_id == user_id, Message.is_read.is_(False))
            .group_by(Message.sender_id)
            .all()
        )
    return {sender_id: count for sender_id, count in rows}


def conversations(db: Session, user_id: int) -> List[schemas.ConversationSummary]:
    """List the user's conversations, most recent first.

    Messages in either direction fall into one bucket per counterpart, and the
    bucket's latest message is the one with the highest id. Ids only track time
    while messages are written by a single sequential writer.
    """
    _require_ids(user_id)
    counterpart = case((Message.sender_id == user_id, Message.receiver_id), else_=Message.sender_id)
    latest_ids = (
        select(func.max(Message.id))
        .where(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
        .group_by(counterpart)
    )

    with _storage(db, "retrieve conversations"):
        rows = (
            _with_names(db.query(Message))
            .filter(Message.id.in_(latest_ids))
            .order_by(Message.created_at.desc(), Message.id.desc())
            .all()
        )
        unread = unread_counts(db, user_id)
        summaries = []
        for message in rows:
            other = message.receiver if message.sender_id == user_id else message.sender
            summaries.append(
                schemas.ConversationSummary(
                    other_user_id=other.id,
                    other_user_name=other.username,
                    last_message=to_message_out(message),
                    unread_count=unread.get(other.id, 0),
                )
            )
    return summaries


def delete_conversation(db: Session, user_a: int, user_b: int) -> int:
    """Hard-delete every message exchanged by the pair. Irreversible."""
    _require_ids(user_a, user_b)
    with _storage(db, "delete conversation"):
        count = db.query(Message).filter(_pair_filter(user_a, user_b)).delete(synchronize_session=False)
        db.commit()
    logger.info("CONVERSATION_DELETED user1_id=%s user2_id=%s count=%s", user_a, user_b, count)
    return count
