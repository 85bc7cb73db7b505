"""Encrypted credential vault and x402 payment flow on the Hedera ledger."""

__version__ = "0.1.0"
