"""Key generation, address checks and at-rest key encoding using eth-account."""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from typing import Protocol

from eth_account import Account
from web3 import Web3

from chat_wallet.errors import InvalidAmount

WEI_PER_ETHER = 10**18


@dataclass(frozen=True)
class Keypair:
    """Fresh key material not yet bound to a chat identity."""

    address: str
    secret_key: str

    def __repr__(self) -> str:
        return f"Keypair(address={self.address!r}, secret_key='**********')"


def generate() -> Keypair:
    """Generate a new Ethereum keypair.

    ``Account.create`` draws its entropy from the operating system's CSPRNG.

    Returns
    -------
    Keypair
        The checksummed address and the ``0x``-prefixed hex private key.
    """
    acct = Account.create()
    return Keypair(address=acct.address, secret_key="0x" + bytes(acct.key).hex())


def address_of(secret_key: str) -> str:
    """Derive the checksummed address for a private key."""
    return Account.from_key(secret_key).address


def is_valid_address(text: str) -> bool:
    """Return True if *text* is a well-formed EVM address.

    Mixed-case input must carry a valid EIP-55 checksum.
    """
    if not isinstance(text, str):
        return False
    return Web3.is_address(text)


def to_base_units(amount: Decimal | str | int) -> int:
    """Convert an ether amount to wei without losing precision.

    Raises
    ------
    InvalidAmount
        If *amount* is not a finite number or has more than 18 decimals.
    """
    if isinstance(amount, float):
        amount = str(amount)
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidAmount(f"'{amount}' is not a number") from exc
    if not value.is_finite():
        raise InvalidAmount(f"'{amount}' is not a finite number")

    with localcontext() as ctx:
        ctx.prec = 100
        scaled = value * WEI_PER_ETHER
        if scaled != scaled.to_integral_value():
            raise InvalidAmount(f"{amount} has more precision than 1 wei")
        return int(scaled)


def from_base_units(value_wei: int) -> Decimal:
    """Convert wei to ether."""
    return Decimal(str(Web3.from_wei(value_wei, "ether")))


# ---------------------------------------------------------------------------
# At-rest encoding of private keys
# ---------------------------------------------------------------------------


class KeyCodec(Protocol):
    """Transforms a private key to and from its stored form."""

    def encode(self, secret_key: str) -> str: ...

    def decode(self, stored: str) -> str: ...


class PlaintextKeyCodec:
    """Stores the hex key as-is."""

    def encode(self, secret_key: str) -> str:
        return secret_key

    def decode(self, stored: str) -> str:
        return stored


class KeystoreKeyCodec:
    """Stores each key as an encrypted eth-account keystore document.

    Parameters
    ----------
    password:
        Password used to encrypt every key.
    iterations:
        PBKDF2 rounds. ``None`` keeps eth-account's default work factor.
    """

    def __init__(self, password: str, iterations: int | None = None) -> None:
        if not password:
            raise ValueError("A keystore password is required.")
        self._password = password
        self._iterations = iterations

    def encode(self, secret_key: str) -> str:
        encrypted = Account.encrypt(
            secret_key, self._password, kdf="pbkdf2", iterations=self._iterations
        )
        return json.dumps(encrypted)

    def decode(self, stored: str) -> str:
        try:
            key = Account.decrypt(json.loads(stored), self._password)
        except Exception as exc:
            raise ValueError(f"Failed to decrypt keystore: {exc}") from exc
        return "0x" + bytes(key).hex()
