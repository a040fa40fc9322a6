"""Pydantic models for stored records and the messages that flow through the bot."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class PromptKind(str, Enum):
    AWAITING_WITHDRAW_ADDRESS = "awaiting_withdraw_address"


class ConversationState(str, Enum):
    IDLE = "idle"
    AWAITING_WITHDRAW_ADDRESS = "awaiting_withdraw_address"


class EventKind(str, Enum):
    START = "start"
    BALANCE = "balance"
    TRADE_QUERY = "trade_query"
    BUY_INTENT = "buy_intent"
    WITHDRAW_INTENT = "withdraw_intent"
    FOLLOWUP_MESSAGE = "followup_message"
    HELP = "help"
    CANCEL = "cancel"


class ReplyStatus(str, Enum):
    OK = "ok"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Record models
# ---------------------------------------------------------------------------

class Account(BaseModel):
    """Maps to the ``accounts`` table.

    The secret key is a ``SecretStr`` so it never shows up in reprs, logs or
    serialized output unless explicitly unwrapped.
    """

    model_config = ConfigDict(frozen=True)

    identity: str
    address: str
    secret_key: SecretStr
    created_at: datetime = Field(default_factory=_utcnow)


class PendingPrompt(BaseModel):
    """Maps to the ``pending_prompts`` table."""

    identity: str
    kind: PromptKind
    created_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Transactions / lookups
# ---------------------------------------------------------------------------

class TransactionRequest(BaseModel):
    account: Account
    to_address: str
    amount: Decimal = Field(allow_inf_nan=True)  # the dispatcher rejects non-finite


class TokenInfo(BaseModel):
    """First DexScreener match for a free-text query."""

    symbol: str
    price_usd: Optional[str] = None
    contract_address: str


# ---------------------------------------------------------------------------
# Router boundary
# ---------------------------------------------------------------------------

class InboundEvent(BaseModel):
    """A normalized event produced by a transport."""

    identity: str
    kind: EventKind
    payload: dict[str, Any] = Field(default_factory=dict)


class BotReply(BaseModel):
    """What the transport should deliver back to the chat."""

    status: ReplyStatus = ReplyStatus.OK
    message: str
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, **data: Any) -> BotReply:
        return cls(status=ReplyStatus.OK, message=message, data=data)

    @classmethod
    def error(cls, message: str, **data: Any) -> BotReply:
        return cls(status=ReplyStatus.ERROR, message=message, data=data)

    @property
    def is_ok(self) -> bool:
        return self.status is ReplyStatus.OK
