"""Shared fakes and fixtures for the test suite."""

from __future__ import annotations

import tempfile
import unittest
from decimal import Decimal
from pathlib import Path

from web3 import Web3

from chat_wallet.storage.database import Database
from chat_wallet.storage.models import TokenInfo

ALICE_DEST = "0x" + "bb" * 20
FAKE_TX_HASH = "0x" + "ab" * 32


class FakeGateway:
    """In-memory stand-in for ChainGateway that records every call."""

    def __init__(self, balances: dict[str, Decimal] | None = None) -> None:
        self.balances = dict(balances or {})
        self.calls: list[tuple] = []
        self.submitted: list[bytes] = []
        self.balance_error: Exception | None = None
        self.submit_error: Exception | None = None

    async def get_balance(self, address: str) -> Decimal:
        self.calls.append(("get_balance", address))
        if self.balance_error is not None:
            raise self.balance_error
        return self.balances.get(address, Decimal("0"))

    async def prepare_transfer(self, from_address: str, to_address: str, value_wei: int) -> dict:
        self.calls.append(("prepare_transfer", from_address, to_address, value_wei))
        return {
            "to": Web3.to_checksum_address(to_address),
            "value": value_wei,
            "nonce": 0,
            "gas": 21000,
            "gasPrice": 10**9,
            "chainId": 1,
        }

    async def submit(self, raw_transaction: bytes) -> str:
        self.calls.append(("submit", raw_transaction))
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(raw_transaction)
        return FAKE_TX_HASH

    def called(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]


class FakeLookup:
    def __init__(self, result: TokenInfo | None = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.queries: list[str] = []

    async def search(self, query: str) -> TokenInfo | None:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.result


class DatabaseTestCase(unittest.IsolatedAsyncioTestCase):
    """Gives each test a fresh SQLite database in a temp directory."""

    async def asyncSetUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_path = Path(self._tmp.name)
        self.db = Database(self.tmp_path / "wallet.db")
        await self.db.connect()

    async def asyncTearDown(self) -> None:
        await self.db.close()
        self._tmp.cleanup()
