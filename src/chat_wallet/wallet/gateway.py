"""Web3 gateway to the ledger node: balance reads and transaction submission."""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator

import requests
from web3 import Web3
from web3.exceptions import (
    BadResponseFormat,
    ContractLogicError,
    ProviderConnectionError,
    TimeExhausted,
    Web3RPCError,
)
from web3.middleware import ExtraDataToPOAMiddleware

from chat_wallet.errors import GatewayUnavailable, Rejected
from chat_wallet.wallet.chains import Chain
from chat_wallet.wallet.keys import from_base_units

logger = logging.getLogger("chat_wallet.wallet.gateway")

_UNAVAILABLE = (
    requests.RequestException,
    OSError,
    ProviderConnectionError,
    BadResponseFormat,
    TimeExhausted,
)
_REJECTED = (Web3RPCError, ContractLogicError)


@contextmanager
def _node_errors(action: str, *, read: bool = False) -> Iterator[None]:
    """Translate web3/transport exceptions into the gateway's error types.

    With *read*, node errors also become ``GatewayUnavailable``.
    """
    try:
        yield
    except _REJECTED as exc:
        if read:
            logger.warning(f"Node failed {action}: {exc}")
            raise GatewayUnavailable(str(exc)) from exc
        logger.warning(f"Node rejected {action}: {exc}")
        raise Rejected(str(exc)) from exc
    except _UNAVAILABLE as exc:
        logger.warning(f"Node unavailable during {action}: {exc}")
        raise GatewayUnavailable(str(exc)) from exc


class ChainGateway:
    """Talks to one EVM node over JSON-RPC.

    web3's HTTP provider is synchronous, so every call is pushed onto a
    worker thread to keep the event loop free for other chats.
    """

    def __init__(self, chain: Chain, rpc_url: str | None = None) -> None:
        self.chain = chain
        self.rpc_url = rpc_url or chain.rpc_url
        self._w3: Web3 | None = None

    @property
    def w3(self) -> Web3:
        """Return a (cached) Web3 instance for the configured chain."""
        if self._w3 is None:
            w3 = Web3(Web3.HTTPProvider(self.rpc_url))
            if self.chain.poa:
                w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
            self._w3 = w3
        return self._w3

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_balance(self, address: str) -> Decimal:
        """Get the native balance in human-readable units (e.g. ETH)."""
        return await asyncio.to_thread(self._get_balance, address)

    def _get_balance(self, address: str) -> Decimal:
        checksum = Web3.to_checksum_address(address)
        with _node_errors("balance query", read=True):
            balance_wei = self.w3.eth.get_balance(checksum)
        if not isinstance(balance_wei, int) or balance_wei < 0:
            raise GatewayUnavailable(f"Malformed balance from node: {balance_wei!r}")
        return from_base_units(balance_wei)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def prepare_transfer(
        self, from_address: str, to_address: str, value_wei: int
    ) -> dict:
        """Fill nonce, fees and gas for a native-token transfer."""
        return await asyncio.to_thread(
            self._prepare_transfer, from_address, to_address, value_wei
        )

    def _prepare_transfer(
        self, from_address: str, to_address: str, value_wei: int
    ) -> dict:
        w3 = self.w3
        sender = Web3.to_checksum_address(from_address)
        with _node_errors("transfer preparation"):
            tx: dict = {
                "from": sender,
                "to": Web3.to_checksum_address(to_address),
                "value": value_wei,
                "nonce": w3.eth.get_transaction_count(sender),
                "chainId": self.chain.chain_id,
            }

            # EIP-1559 when the chain reports a base fee, legacy gas price otherwise
            latest = w3.eth.get_block("latest")
            base_fee = latest.get("baseFeePerGas")
            if base_fee is not None:
                max_priority = Web3.to_wei(1.5, "gwei")
                tx["maxFeePerGas"] = base_fee * 2 + max_priority
                tx["maxPriorityFeePerGas"] = max_priority
            else:
                tx["gasPrice"] = w3.eth.gas_price
            tx["gas"] = w3.eth.estimate_gas(tx)

        del tx["from"]
        return tx

    async def submit(self, raw_transaction: bytes) -> str:
        """Broadcast a signed transaction and return its hash as hex."""
        return await asyncio.to_thread(self._submit, raw_transaction)

    def _submit(self, raw_transaction: bytes) -> str:
        with _node_errors("transaction submission"):
            tx_hash = self.w3.eth.send_raw_transaction(raw_transaction)
        return "0x" + bytes(tx_hash).hex()
