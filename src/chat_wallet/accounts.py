"""Account store: chat identity -> custodial account, created on first contact."""

from __future__ import annotations

import asyncio
import logging

from pydantic import SecretStr

from chat_wallet.locks import KeyedLock
from chat_wallet.storage.database import Database
from chat_wallet.storage.models import Account
from chat_wallet.wallet.keys import KeyCodec, PlaintextKeyCodec, generate

logger = logging.getLogger("chat_wallet.accounts")


class AccountStore:
    """Maps identities to accounts in the ``accounts`` table.

    Secret keys pass through *codec* on the way in and out, so switching to
    encrypted storage doesn't touch callers.
    """

    def __init__(self, db: Database, codec: KeyCodec | None = None) -> None:
        self.db = db
        self.codec: KeyCodec = codec or PlaintextKeyCodec()
        self._creating = KeyedLock()

    async def get(self, identity: str) -> Account | None:
        """Fetch the account for *identity* without creating one."""
        row = await self.db.fetch_one(
            "SELECT identity, address, secret_key, created_at "
            "FROM accounts WHERE identity = ?",
            (identity,),
        )
        if row is None:
            return None
        return await self._from_row(row)

    async def resolve(self, identity: str) -> Account:
        """Return the account for *identity*, generating it on first contact."""
        account, _ = await self.get_or_create(identity)
        return account

    async def get_or_create(self, identity: str) -> tuple[Account, bool]:
        """Like :meth:`resolve`, also reporting whether this call created it."""
        async with self._creating.hold(identity):
            existing = await self.get(identity)
            if existing is not None:
                return existing, False

            keypair = generate()
            stored_key = await asyncio.to_thread(self.codec.encode, keypair.secret_key)
            cursor = await self.db.execute(
                "INSERT OR IGNORE INTO accounts (identity, address, secret_key) "
                "VALUES (?, ?, ?)",
                (identity, keypair.address, stored_key),
            )
            # Another process may have inserted between our read and write.
            stored = await self.get(identity)
            if stored is None:
                raise RuntimeError(f"Account for {identity} vanished after insert.")
            created = cursor.rowcount == 1
            if created:
                logger.info(f"Wallet {stored.address} created for {identity}")
            return stored, created

    async def _from_row(self, row: dict) -> Account:
        # Keystore decoding runs PBKDF2, so it must not run on the event loop.
        secret_key = await asyncio.to_thread(self.codec.decode, row["secret_key"])
        return Account(
            identity=row["identity"],
            address=row["address"],
            secret_key=SecretStr(secret_key),
            created_at=row["created_at"],
        )
