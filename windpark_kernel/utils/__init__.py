"""Kernel utilities."""

from windpark_kernel.utils.hashing import (
    GENESIS_HASH,
    create_chain_hash,
    hash_document,
    verify_document_integrity,
)

__all__ = [
    "GENESIS_HASH",
    "hash_document",
    "create_chain_hash",
    "verify_document_integrity",
]
