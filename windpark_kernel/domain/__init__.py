"""
Pure domain layer.

Value objects and time abstractions with NO dependencies on the ORM,
the database or I/O (SystemClock excepted).
"""

from windpark_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from windpark_kernel.domain.workflow import Transition, Workflow

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "Transition",
    "Workflow",
]
