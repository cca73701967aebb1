"""
Module ORM registry (``tenancy_modules._orm_registry``).

Imports every ORM model so ``Base.metadata`` holds the full schema before
tables are created.  Scripts and ``tests/conftest.py`` call
``create_all_tables()``.
"""


def import_all_orm_models() -> None:
    """Register kernel and module ORM models (idempotent)."""
    import tenancy_kernel.models  # noqa: F401
    import tenancy_modules.lease.orm  # noqa: F401


def create_all_tables() -> None:
    """Register every model and create all tables on the current engine."""
    from tenancy_kernel.db.engine import create_tables

    create_tables()
