"""Chat Wallet storage layer -- async SQLite database and Pydantic models."""

from chat_wallet.storage.database import Database, get_database
from chat_wallet.storage.models import (
    Account,
    BotReply,
    ConversationState,
    EventKind,
    InboundEvent,
    PendingPrompt,
    PromptKind,
    ReplyStatus,
    TokenInfo,
    TransactionRequest,
)

__all__ = [
    "Database",
    "get_database",
    "Account",
    "BotReply",
    "ConversationState",
    "EventKind",
    "InboundEvent",
    "PendingPrompt",
    "PromptKind",
    "ReplyStatus",
    "TokenInfo",
    "TransactionRequest",
]
