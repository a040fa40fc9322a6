"""Chat Wallet - a custodial chat-bot wallet for EVM networks.

Each chat identity gets a generated account whose key is held by the
service. The bot reports balances, dispatches payments on the user's behalf,
and looks up token metadata.
"""

__version__ = "0.1.0"
