"""
Tenancy kernel: the ledger of record for student accommodation accounting.

Everything that touches ledger rows (models, repository, chart of accounts,
per-student serialization, read-only selectors) lives here.  Engines and
modules build on top of it and never write ledger rows directly.
"""
