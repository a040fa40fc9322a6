"""Transaction dispatcher: validate, sign with the custodial key, submit.

A submission is irreversible. There is no idempotency key and no retry, so
a caller must dispatch at most once per user intent; a ``GatewayUnavailable``
after submission may still mean the transaction reached the network.
"""

from __future__ import annotations

import logging
from typing import Protocol

from eth_account import Account as EthAccount

from chat_wallet.errors import InvalidAddress, InvalidAmount
from chat_wallet.storage.models import TransactionRequest
from chat_wallet.wallet.keys import is_valid_address, to_base_units

logger = logging.getLogger("chat_wallet.dispatcher")


class Gateway(Protocol):
    async def prepare_transfer(
        self, from_address: str, to_address: str, value_wei: int
    ) -> dict: ...

    async def submit(self, raw_transaction: bytes) -> str: ...


class TransactionDispatcher:
    """Signs and submits payments for custodial accounts."""

    def __init__(self, gateway: Gateway) -> None:
        self.gateway = gateway

    async def dispatch(self, request: TransactionRequest) -> str:
        """Send ``request.amount`` from the account to ``request.to_address``.

        Returns
        -------
        str
            The transaction hash.

        Raises
        ------
        InvalidAddress
            Destination is not a well-formed address. Nothing is sent.
        InvalidAmount
            Amount is not positive or not expressible in wei. Nothing is sent.
        GatewayUnavailable, Rejected
            Propagated unchanged from the gateway.
        """
        if not is_valid_address(request.to_address):
            raise InvalidAddress(f"'{request.to_address}' is not a valid address")
        value_wei = to_base_units(request.amount)
        if value_wei <= 0:
            raise InvalidAmount(f"Amount must be positive, got {request.amount}")

        account = request.account
        tx = await self.gateway.prepare_transfer(
            account.address, request.to_address, value_wei
        )
        signed = EthAccount.sign_transaction(tx, account.secret_key.get_secret_value())

        logger.info(
            f"Dispatching {request.amount} from {account.address} "
            f"to {request.to_address} for {account.identity}"
        )
        tx_hash = await self.gateway.submit(signed.raw_transaction)
        logger.info(f"Submitted tx={tx_hash} for {account.identity}")
        return tx_hash
