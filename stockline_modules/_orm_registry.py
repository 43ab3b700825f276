"""
Module ORM Registry (``stockline_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy ORM model is imported so that ``Base.metadata``
contains its table before tables are created, and install the kernel's
ledger protection listeners.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``stockline_modules``
packages and from ``stockline_kernel`` (allowed: modules -> kernel).
MUST NOT be imported by ``stockline_kernel``.

Usage
-----
The engine facade, scripts and ``tests/conftest.py`` all call
``create_all_tables()``.
"""

from sqlalchemy.engine import Engine


def import_all_orm_models() -> None:
    """Import kernel models and every module ORM module.  Idempotent."""
    import stockline_kernel.models  # noqa: F401
    import stockline_kernel.services.sequence_service  # noqa: F401  # sequence_counters
    import stockline_modules.purchasing.orm  # noqa: F401
    import stockline_modules.sales.orm  # noqa: F401

    from stockline_kernel.db.immutability import register_immutability_listeners

    register_immutability_listeners()


def create_all_tables(engine: Engine | None = None) -> None:
    """Register every ORM model, then create all tables on ``engine``."""
    from stockline_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables(engine)
