"""AI chat with the user's linked accounts and recent turns as context.

Both sides of every turn are stored as ``chat_messages`` rows; the most
recent ones are replayed into the system prompt. Without an OpenAI key,
or when the call fails for any reason, the reply comes from a fixed pool
of canned responses. The end user never sees an error from this service.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from integrations.exceptions import IntegrationError
from integrations.llm_client import OpenAIChatClient
from models import BankAccount, ChatMessage
from services.balance import BalanceKind, interpret_balance

logger = logging.getLogger(__name__)

ASSISTANT_NAME = "LuxeBot"

# Stored messages replayed into the system prompt
HISTORY_CONTEXT_SIZE = 6

EMPTY_REPLY = "I'm sorry, I couldn't process that request right now. Please try again."

FALLBACK_RESPONSES = (
    "I'm here to help with your financial goals! What would you like to know about budgeting, saving, or investing?",
    "Great question! Building good financial habits is the foundation of long-term wealth. What specific area interests you most?",
    "I'm experiencing some technical difficulties, but I'm still here to help with your financial planning!",
    "Your financial journey is important. Let me help you make smart decisions about your money.",
    "I'd love to help you optimize your finances. What's your biggest financial priority right now?",
)


def level_for_xp(xp: int) -> int:
    """One level per 100 XP, starting at level 1."""
    return max(xp, 0) // 100 + 1


@dataclass
class ChatContext:
    name: str = "User"
    xp: int = 0
    accounts: list[BankAccount] = field(default_factory=list)
    history: list[ChatMessage] = field(default_factory=list)

    @property
    def level(self) -> int:
        return level_for_xp(self.xp)


@dataclass
class ChatReply:
    response: str
    source: str  # "llm" or "fallback"


def _describe_account(account: BankAccount) -> str:
    interp = interpret_balance(account.type, account.balance)
    heading = f"- {account.name} ({account.subtype or account.type}, {account.institution_name})"
    if interp.kind is BalanceKind.SETTLED:
        return f"{heading}: paid off"
    label = {
        BalanceKind.AVAILABLE: "available",
        BalanceKind.OVERDRAFT: "overdrawn by",
        BalanceKind.OWED: "owed",
        BalanceKind.CREDIT_BALANCE: "credit balance",
    }[interp.kind]
    return f"{heading}: {label} ${interp.display_amount:,.2f}"


def build_system_prompt(context: ChatContext) -> str:
    """Render the system prompt for one chat turn."""
    if context.accounts:
        net = sum((Decimal(str(a.balance)) for a in context.accounts), Decimal("0"))
        accounts_block = "\n".join(_describe_account(a) for a in context.accounts)
        accounts_block += f"\nNet balance across linked accounts: ${net:,.2f}"
    else:
        accounts_block = "No bank accounts linked yet"

    history_block = ""
    if context.history:
        lines = "\n".join(
            f"{'User' if m.is_user else ASSISTANT_NAME}: {m.message}" for m in context.history
        )
        history_block = f"Recent conversation:\n{lines}\n\n"

    return (
        f"You are {ASSISTANT_NAME}, an AI-powered financial coach for DoughJo. "
        f"You're helping {context.name}, who is currently at Level {context.level} "
        f"with {context.xp} XP.\n\n"
        f"Linked accounts:\n{accounts_block}\n\n"
        f"{history_block}"
        "Guidelines:\n"
        "- Keep responses concise but helpful (2-3 sentences typically)\n"
        "- Be encouraging about their financial journey\n"
        "- Give specific, actionable advice and reference their accounts when relevant\n"
        "- Focus on building good financial habits"
    )


class ChatService:
    """Answers chat messages through the LLM, or from the fallback pool.

    Methods ``flush()``; the API layer commits.
    """

    def __init__(self, llm: OpenAIChatClient | None = None, rng: random.Random | None = None):
        self._llm = llm or OpenAIChatClient()
        self._rng = rng or random.Random()

    def fallback(self) -> ChatReply:
        return ChatReply(response=self._rng.choice(FALLBACK_RESPONSES), source="fallback")

    @staticmethod
    def history(db: Session, user_id: str, limit: int | None = None) -> list[ChatMessage]:
        """Stored messages of ``user_id``, oldest first.

        With ``limit``, only the most recent ``limit`` messages are returned
        (still oldest first).
        """
        query = db.query(ChatMessage).filter(ChatMessage.user_id == user_id)
        if limit is None:
            return query.order_by(ChatMessage.timestamp, ChatMessage.is_user.desc()).all()
        recent = (
            query.order_by(ChatMessage.timestamp.desc(), ChatMessage.is_user)
            .limit(limit)
            .all()
        )
        return list(reversed(recent))

    def reply(
        self,
        db: Session,
        user_id: str,
        message: str,
        *,
        name: str | None = None,
        xp: int = 0,
    ) -> ChatReply:
        """Answer ``message`` and store both sides of the turn."""
        history = self.history(db, user_id, limit=HISTORY_CONTEXT_SIZE)
        self._record(db, user_id, message, is_user=True)
        reply = self._compose(db, user_id, message, name=name, xp=xp, history=history)
        self._record(db, user_id, reply.response, is_user=False)
        db.flush()
        return reply

    def _compose(self, db, user_id, message, *, name, xp, history) -> ChatReply:
        if not self._llm.is_configured():
            logger.info("OpenAI API key not found, using fallback response")
            return self.fallback()

        accounts = db.query(BankAccount).filter(BankAccount.user_id == user_id).all()
        context = ChatContext(name=name or "User", xp=xp, accounts=accounts, history=history)
        try:
            text = self._llm.complete(build_system_prompt(context), message)
        except IntegrationError as e:
            logger.warning("Chat completion failed, using fallback: %s", e)
            return self.fallback()
        except Exception:
            logger.warning("Chat completion failed, using fallback", exc_info=True)
            return self.fallback()

        return ChatReply(response=text or EMPTY_REPLY, source="llm")

    @staticmethod
    def _record(db: Session, user_id: str, message: str, *, is_user: bool) -> None:
        db.add(ChatMessage(
            user_id=user_id,
            message=message,
            is_user=is_user,
            timestamp=datetime.now(timezone.utc),
        ))
