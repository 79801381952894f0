"""Message-related API routes."""
from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from . import schemas, store
from .config import DEFAULT_PAGE_SIZE, MAX_ID
from .database import get_db

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("/send", response_model=schemas.MessageSendResponse, status_code=status.HTTP_201_CREATED)
def send_message(payload: schemas.MessageCreate, db: Session = Depends(get_db)):
    message = store.persist_message(db, payload.sender_id, payload.receiver_id, payload.content)
    return schemas.MessageSendResponse(message="Message sent successfully", data=message)


@router.get("", response_model=schemas.MessageHistoryResponse)
def get_messages(
    sender_id: int = Query(..., gt=0, le=MAX_ID),
    receiver_id: int = Query(..., gt=0, le=MAX_ID),
    limit: int = Query(DEFAULT_PAGE_SIZE, gt=0, le=MAX_ID),
    offset: int = Query(0, ge=0, le=MAX_ID),
    db: Session = Depends(get_db),
):
    """Return the pair's history, oldest first.

    Loading a thread also marks everything ``receiver_id`` sent to ``sender_id``
    as read; existing clients rely on opening a thread clearing its badge.
    """
    messages = store.fetch_history(db, sender_id, receiver_id, limit, offset)
    store.mark_read(db, sender_id, receiver_id)
    return schemas.MessageHistoryResponse(count=len(messages), messages=messages)


@router.get("/conversations", response_model=schemas.ConversationListResponse)
def get_conversations(user_id: int = Query(..., gt=0, le=MAX_ID), db: Session = Depends(get_db)):
    conversations = store.conversations(db, user_id)
    return schemas.ConversationListResponse(count=len(conversations), conversations=conversations)


@router.get("/unread", response_model=schemas.UnreadCountsResponse)
def get_unread_counts(user_id: int = Query(..., gt=0, le=MAX_ID), db: Session = Depends(get_db)):
    return schemas.UnreadCountsResponse(unreadCounts=store.unread_counts(db, user_id))


@router.get("/{message_id}", response_model=schemas.MessageOut)
def get_message(message_id: int = Path(..., gt=0, le=MAX_ID), db: Session = Depends(get_db)):
    return store.get_message(db, message_id)


@router.put("/read", response_model=schemas.CountResponse)
def mark_messages_read(payload: schemas.MarkReadRequest, db: Session = Depends(get_db)):
    count = store.mark_read(db, payload.receiver_id, payload.sender_id)
    return schemas.CountResponse(message=f"Marked {count} messages as read", count=count)


@router.delete("/conversation", response_model=schemas.CountResponse)
def delete_conversation(
    user1_id: int = Query(..., gt=0, le=MAX_ID),
    user2_id: int = Query(..., gt=0, le=MAX_ID),
    db: Session = Depends(get_db)):
    count = store.delete_conversation(db, user1_id, user2_id)
    return schemas.CountResponse(message=f"Deleted {count} messages", count=count)
