"""User-facing reply texts (Telegram Markdown)."""

from __future__ import annotations

from decimal import Decimal

from chat_wallet.errors import WalletBotError
from chat_wallet.storage.models import BotReply, TokenInfo

HELP_TEXT = (
    "ℹ️ *Available Commands:*\n"
    "/start - Create or retrieve wallet\n"
    "/balance - Check ETH balance\n"
    "/trade <token> - Fetch contract & buy options\n"
    "/withdraw - Withdraw ETH to an external wallet\n"
    "/help - Show this help menu"
)


def failure(exc: WalletBotError, heading: str | None = None) -> BotReply:
    """Turn a typed failure into an error reply tagged with its code."""
    text = f"⚠️ {exc.title}"
    if heading:
        text = f"❌ *{heading}:* {exc.title}"
    return BotReply.error(text, error=exc.code)


def wallet_created(address: str) -> BotReply:
    return BotReply.ok(
        f"✅ *New Wallet Created:* \n`{address}`", address=address, created=True
    )


def wallet_existing(address: str) -> BotReply:
    return BotReply.ok(
        f"💰 *Your ETH Wallet:* \n`{address}`", address=address, created=False
    )


def balance(amount: Decimal, symbol: str) -> BotReply:
    return BotReply.ok(
        f"💰 *Your Balance:* {amount} {symbol}",
        balance=str(amount),
        actions=[{"text": "💸 Withdraw", "callback_data": "withdraw"}],
    )


def token_found(token: TokenInfo, buy_amounts: list[str], symbol: str) -> BotReply:
    actions = [
        {
            "text": f"💰 Buy {amount} {symbol}",
            "callback_data": f"buy_{amount}_{token.contract_address}",
        }
        for amount in buy_amounts
    ]
    actions.append({"text": "❌ Cancel", "callback_data": "cancel"})
    return BotReply.ok(
        f"📊 *Token:* {token.symbol}\n"
        f"💲 *Price:* ${token.price_usd or 'n/a'}\n"
        f"🔗 *Contract:* `{token.contract_address}`",
        token=token.model_dump(),
        actions=actions,
    )


def token_not_found() -> BotReply:
    return BotReply.error("⚠️ Contract not found!", error="token_not_found")


def transaction_sent(tx_hash: str) -> BotReply:
    return BotReply.ok(f"✅ *Transaction Sent:* `{tx_hash}`", tx_hash=tx_hash)


def withdraw_prompt() -> BotReply:
    return BotReply.ok(
        "🔹 Reply with your Ethereum address to withdraw.", awaiting="withdraw_address"
    )


def withdrawn(tx_hash: str, amount: Decimal) -> BotReply:
    return BotReply.ok(
        f"✅ *Withdrawn!* TX: `{tx_hash}`", tx_hash=tx_hash, amount=str(amount)
    )


def cancelled() -> BotReply:
    return BotReply.ok("❌ Cancelled.")


def unexpected() -> BotReply:
    return BotReply.error("❌ Something went wrong. Please try again.", error="internal")
