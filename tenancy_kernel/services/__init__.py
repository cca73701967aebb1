"""Kernel services: ledger repository, chart of accounts, student locks."""
