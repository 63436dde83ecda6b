"""Kernel services -- imperative shell infrastructure."""

from windpark_kernel.services.sequence_service import SequenceCounter, SequenceService

__all__ = ["SequenceCounter", "SequenceService"]
