"""Command router: normalized chat events -> wallet operations -> replies.

Everything for one identity runs strictly in arrival order; different
identities proceed concurrently.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from chat_wallet import replies
from chat_wallet.errors import InvalidAmount, NotFound, WalletBotError
from chat_wallet.locks import KeyedLock
from chat_wallet.storage.models import (
    BotReply,
    EventKind,
    InboundEvent,
    TransactionRequest,
)

if TYPE_CHECKING:
    from chat_wallet.accounts import AccountStore
    from chat_wallet.conversation import ConversationStateMachine
    from chat_wallet.dispatcher import TransactionDispatcher
    from chat_wallet.metadata import TokenLookup
    from chat_wallet.wallet.gateway import ChainGateway

logger = logging.getLogger("chat_wallet.router")

_COMMAND_RE = re.compile(r"^/(?P<name>[A-Za-z_]+)(?:@\w+)?(?:\s+(?P<arg>.+))?$", re.DOTALL)

_COMMANDS: dict[str, EventKind] = {
    "start": EventKind.START,
    "balance": EventKind.BALANCE,
    "trade": EventKind.TRADE_QUERY,
    "withdraw": EventKind.WITHDRAW_INTENT,
    "help": EventKind.HELP,
}


def parse_command(identity: str, text: str) -> InboundEvent | None:
    """Turn ``/command [arg]`` text into an event. Other text gives ``None``."""
    match = _COMMAND_RE.match((text or "").strip())
    if not match:
        return None
    kind = _COMMANDS.get(match.group("name").lower())
    if kind is None:
        return None
    payload = {}
    if kind is EventKind.TRADE_QUERY:
        payload["query"] = (match.group("arg") or "").strip()
    return InboundEvent(identity=identity, kind=kind, payload=payload)


def parse_callback(identity: str, data: str) -> InboundEvent | None:
    """Turn inline-button callback data into an event."""
    if data == "withdraw":
        return InboundEvent(identity=identity, kind=EventKind.WITHDRAW_INTENT)
    if data == "cancel":
        return InboundEvent(identity=identity, kind=EventKind.CANCEL)
    if data.startswith("buy_"):
        parts = data.split("_", 2)
        if len(parts) == 3 and parts[1] and parts[2]:
            return InboundEvent(
                identity=identity,
                kind=EventKind.BUY_INTENT,
                payload={"amount": parts[1], "contract_address": parts[2]},
            )
    return None


class CommandRouter:
    """Maps events onto the account store, gateway, dispatcher and conversations."""

    def __init__(
        self,
        accounts: AccountStore,
        gateway: ChainGateway,
        dispatcher: TransactionDispatcher,
        conversation: ConversationStateMachine,
        lookup: TokenLookup,
        *,
        native_symbol: str = "ETH",
        buy_amounts: list[str] | None = None,
    ) -> None:
        self.accounts = accounts
        self.gateway = gateway
        self.dispatcher = dispatcher
        self.conversation = conversation
        self.lookup = lookup
        self.native_symbol = native_symbol
        self.buy_amounts = buy_amounts or ["0.1", "0.5"]
        self._serial = KeyedLock()

    async def handle_text(self, identity: str, text: str) -> BotReply | None:
        """Handle a raw chat message.

        A pending prompt gets first claim on the message; otherwise it is
        parsed as a command. Plain chatter yields ``None``.
        """
        async with self._serial.hold(identity):
            reply = await self._guarded(
                identity, self.conversation.handle_followup(identity, text)
            )
            if reply is not None:
                return reply
            event = parse_command(identity, text)
            if event is None:
                return None
            return await self._guarded(identity, self._route(event))

    async def handle(self, event: InboundEvent) -> BotReply | None:
        """Handle an already-normalized event."""
        async with self._serial.hold(event.identity):
            return await self._guarded(event.identity, self._route(event))

    async def _guarded(self, identity: str, coro) -> BotReply | None:
        try:
            return await coro
        except WalletBotError as exc:
            logger.info(f"{identity}: {exc.code} ({exc})")
            return replies.failure(exc)
        except Exception:
            logger.exception(f"Unhandled error while serving {identity}")
            return replies.unexpected()

    async def _route(self, event: InboundEvent) -> BotReply | None:
        kind = event.kind
        if kind is EventKind.START:
            return await self._start(event)
        if kind is EventKind.BALANCE:
            return await self._balance(event)
        if kind is EventKind.TRADE_QUERY:
            return await self._trade_query(event)
        if kind is EventKind.BUY_INTENT:
            return await self._buy(event)
        if kind is EventKind.WITHDRAW_INTENT:
            return await self.conversation.begin_withdrawal(event.identity)
        if kind is EventKind.FOLLOWUP_MESSAGE:
            text = str(event.payload.get("text", ""))
            return await self.conversation.handle_followup(event.identity, text)
        if kind is EventKind.HELP:
            return BotReply.ok(replies.HELP_TEXT)
        if kind is EventKind.CANCEL:
            return replies.cancelled()
        raise ValueError(f"Unhandled event kind: {kind}")

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _start(self, event: InboundEvent) -> BotReply:
        account, created = await self.accounts.get_or_create(event.identity)
        if created:
            return replies.wallet_created(account.address)
        return replies.wallet_existing(account.address)

    async def _balance(self, event: InboundEvent) -> BotReply:
        account = await self._require_account(event.identity)
        amount = await self.gateway.get_balance(account.address)
        return replies.balance(amount, self.native_symbol)

    async def _trade_query(self, event: InboundEvent) -> BotReply:
        query = str(event.payload.get("query", "")).strip()
        if not query:
            return BotReply.error("Usage: /trade <token>", error="usage")
        token = await self.lookup.search(query)
        if token is None:
            return replies.token_not_found()
        return replies.token_found(token, self.buy_amounts, self.native_symbol)

    async def _buy(self, event: InboundEvent) -> BotReply:
        account = await self._require_account(event.identity)
        try:
            amount = Decimal(str(event.payload.get("amount", "")))
        except InvalidOperation as exc:
            raise InvalidAmount(str(event.payload.get("amount"))) from exc
        request = TransactionRequest(
            account=account,
            to_address=str(event.payload.get("contract_address", "")),
            amount=amount,
        )
        try:
            tx_hash = await self.dispatcher.dispatch(request)
        except WalletBotError as exc:
            logger.warning(f"Buy for {event.identity} failed: {exc}")
            return replies.failure(exc, "Transaction Failed")
        return replies.transaction_sent(tx_hash)

    async def _require_account(self, identity: str):
        account = await self.accounts.get(identity)
        if account is None:
            raise NotFound(f"No account for {identity}")
        return account
