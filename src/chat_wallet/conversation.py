"""Conversation state machine for multi-turn flows (withdrawal address capture).

A chat is either IDLE or awaiting a specific reply. The pending prompt is
persisted, so it survives a restart, and it is single-shot: the very next
message from that chat consumes it whether or not the message is usable.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chat_wallet import replies
from chat_wallet.errors import InvalidAddress, NotFound, WalletBotError
from chat_wallet.storage.database import Database
from chat_wallet.storage.models import (
    BotReply,
    ConversationState,
    PendingPrompt,
    PromptKind,
    TransactionRequest,
)
from chat_wallet.wallet.keys import is_valid_address

if TYPE_CHECKING:
    from chat_wallet.accounts import AccountStore
    from chat_wallet.dispatcher import TransactionDispatcher
    from chat_wallet.wallet.gateway import ChainGateway

logger = logging.getLogger("chat_wallet.conversation")


class PromptStore:
    """At most one pending prompt per identity, in ``pending_prompts``."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def set(self, identity: str, kind: PromptKind) -> PendingPrompt:
        """Store a prompt, replacing any earlier one for *identity*."""
        prompt = PendingPrompt(identity=identity, kind=kind)
        await self.db.execute(
            "INSERT OR REPLACE INTO pending_prompts (identity, kind, created_at) "
            "VALUES (?, ?, ?)",
            (prompt.identity, prompt.kind.value, prompt.created_at.isoformat()),
        )
        return prompt

    async def get(self, identity: str) -> PendingPrompt | None:
        row = await self.db.fetch_one(
            "SELECT identity, kind, created_at FROM pending_prompts WHERE identity = ?",
            (identity,),
        )
        if row is None:
            return None
        return PendingPrompt.model_validate(row)

    async def take(self, identity: str) -> PendingPrompt | None:
        """Remove and return the prompt for *identity*, if any."""
        prompt = await self.get(identity)
        if prompt is not None:
            await self.db.execute(
                "DELETE FROM pending_prompts WHERE identity = ?", (identity,)
            )
        return prompt


class ConversationStateMachine:
    """Routes a chat's next message to the flow that is waiting for it.

    Callers must serialize calls per identity; :class:`CommandRouter` does.
    """

    def __init__(
        self,
        prompts: PromptStore,
        accounts: AccountStore,
        gateway: ChainGateway,
        dispatcher: TransactionDispatcher,
    ) -> None:
        self.prompts = prompts
        self.accounts = accounts
        self.gateway = gateway
        self.dispatcher = dispatcher

    async def state(self, identity: str) -> ConversationState:
        prompt = await self.prompts.get(identity)
        if prompt is None:
            return ConversationState.IDLE
        return ConversationState(prompt.kind.value)

    async def begin_withdrawal(self, identity: str) -> BotReply:
        """IDLE -> AWAITING_WITHDRAW_ADDRESS."""
        if await self.accounts.get(identity) is None:
            raise NotFound(f"No account for {identity}")
        await self.prompts.set(identity, PromptKind.AWAITING_WITHDRAW_ADDRESS)
        logger.info(f"Awaiting withdrawal address from {identity}")
        return replies.withdraw_prompt()

    async def handle_followup(self, identity: str, text: str) -> BotReply | None:
        """Consume the pending prompt with *text*.

        Returns ``None`` when nothing is pending, so the caller can treat the
        message as a fresh command.
        """
        prompt = await self.prompts.take(identity)
        if prompt is None:
            return None
        logger.info(f"Prompt {prompt.kind.value} consumed by {identity}")

        if prompt.kind is PromptKind.AWAITING_WITHDRAW_ADDRESS:
            return await self._withdraw_to(identity, (text or "").strip())
        raise ValueError(f"Unhandled prompt kind: {prompt.kind}")

    async def _withdraw_to(self, identity: str, to_address: str) -> BotReply:
        """Move the account's full balance to *to_address*."""
        if not is_valid_address(to_address):
            return replies.failure(InvalidAddress(to_address))

        try:
            account = await self.accounts.get(identity)
            if account is None:
                raise NotFound(f"No account for {identity}")
            balance = await self.gateway.get_balance(account.address)
            tx_hash = await self.dispatcher.dispatch(
                TransactionRequest(account=account, to_address=to_address, amount=balance)
            )
        except WalletBotError as exc:
            logger.warning(f"Withdrawal for {identity} failed: {exc}")
            return replies.failure(exc, "Withdrawal Failed")

        return replies.withdrawn(tx_hash, balance)
