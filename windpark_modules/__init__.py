"""
Wind-Park Modules.

Business modules on top of the wind-park kernel and engines.
Each module contains:
- Domain models (calculation inputs and results)
- ORM persistence models
- Workflows (state machines)
- Configuration schemas
- A service that owns the transaction boundary

Modules:
- Tax: tax rates, position tax mapping, tenant settings, invoice numbers
- Lease revenue: landowner settlement calculation, credit notes and
  operator cost allocation
- Archive: GoBD hash-chained document archive
"""

from windpark_modules import archive, lease_revenue, tax

__all__ = [
    "tax",
    "lease_revenue",
    "archive",
]
