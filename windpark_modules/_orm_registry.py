"""
Module ORM Registry (``windpark_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before tables are
created by ``windpark_kernel.db.engine.create_tables()``.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``windpark_modules``
packages (allowed: modules -> kernel).
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``windpark_modules.*.orm`` module.

    Kernel tables are registered first because module tables reference
    them (parks, leases, invoices, funds).

    This function is idempotent -- repeated calls are harmless.
    """
    import windpark_kernel.models  # noqa: F401
    import windpark_modules.archive.orm  # noqa: F401
    import windpark_modules.lease_revenue.orm  # noqa: F401
    import windpark_modules.tax.orm  # noqa: F401
