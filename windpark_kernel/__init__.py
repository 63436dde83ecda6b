"""
Wind-Park Kernel

Shared infrastructure for the lease-revenue settlement engine and the
GoBD archive:
- Decimal money with explicit half-up rounding
- Atomic, lock-serialized transactions
- Structured JSON logging
- Typed exceptions with machine-readable codes
- Injectable clock for deterministic tests
"""

__version__ = "0.1.0"
