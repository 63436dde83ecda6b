"""
Wind-park engines -- pure calculation layer.

Engines perform no I/O and no clock access.  They take Decimal inputs and
return frozen results with deterministic rounding.
"""

from windpark_engines.allocation import (
    Distribution,
    allocate_proportionally,
    distribute_with_remainder,
)

__all__ = [
    "Distribution",
    "allocate_proportionally",
    "distribute_with_remainder",
]
