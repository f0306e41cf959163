"""AI chat endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from schemas import ChatMessageResponse, ChatRequest, ChatResponse
from services.chat_service import ChatService

router = APIRouter(prefix="/api/chat", tags=["chat"])


def get_chat_service() -> ChatService:
    """Dependency for injecting the chat service (overridable in tests)."""
    return ChatService()


@router.post("", response_model=ChatResponse)
def chat(
    body: ChatRequest,
    db: Session = Depends(get_db),
    service: ChatService = Depends(get_chat_service),
):
    """Answer a chat message. Always 200: failures fall back to canned replies."""
    reply = service.reply(db, body.user_id, body.message, name=body.name, xp=body.xp)
    db.commit()
    return ChatResponse(response=reply.response, source=reply.source)


@router.get("/history", response_model=list[ChatMessageResponse])
def chat_history(user_id: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    """Stored chat messages of a user, oldest first."""
    return ChatService.history(db, user_id)
