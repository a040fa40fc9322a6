"""Custodial wallet primitives for Chat Wallet.

Key generation and encoding, network definitions, and the web3 gateway used
to read balances and broadcast signed transfers.
"""
