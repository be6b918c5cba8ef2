"""
Module ORM Registry (``stock_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before tables are
created.  ``stock_kernel.db.engine.create_tables()`` calls
``import_all_orm_models()`` itself, so scripts and ``tests/conftest.py``
only ever need ``create_tables()``.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``stock_modules``
packages.  The kernel reaches it only through the lazy import inside
``create_tables()``.
"""


def import_all_orm_models() -> None:
    """Import every ``stock_modules.*.orm`` module to register ORM models.

    This function is idempotent -- repeated calls are harmless.
    """
    # fmt: off
    import stock_modules.catalog.orm  # noqa: F401
    import stock_modules.fulfillment.orm  # noqa: F401
    import stock_modules.ledger.orm  # noqa: F401
    # fmt: on
