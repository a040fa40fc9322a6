"""Typed failures surfaced by the wallet core.

Validation errors are raised locally before any network call; gateway errors
are raised by the chain gateway and propagate unchanged.
"""

from __future__ import annotations


class WalletBotError(Exception):
    """Base class for every failure reported back to a chat."""

    code = "error"
    title = "Something went wrong"

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.title)
        self.detail = detail


class InvalidAddress(WalletBotError):
    code = "invalid_address"
    title = "Invalid Ethereum address"


class InvalidAmount(WalletBotError):
    code = "invalid_amount"
    title = "Invalid amount"


class GatewayUnavailable(WalletBotError):
    """The ledger node could not be reached or answered with garbage."""

    code = "gateway_unavailable"
    title = "Network unavailable, try again later"


class Rejected(WalletBotError):
    """The node accepted the call but refused the transaction."""

    code = "rejected"
    title = "Transaction rejected"


class NotFound(WalletBotError):
    code = "not_found"
    title = "No wallet found! Use /start to create one."


class LookupUnavailable(WalletBotError):
    code = "lookup_unavailable"
    title = "Token lookup is unavailable right now"
