"""
Tenancy ledger modules.

Business services built on the kernel: lease data, rent accruals, payment
allocation and deposits, statement reconstruction and the ledger audit.
Each service owns its transaction boundary.
"""
