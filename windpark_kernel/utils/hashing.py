"""
Deterministic hashing utilities for the GoBD archive chain.

All hashing in the archive must be deterministic and reproducible.
This module provides the canonical hashing functions used throughout.

Chain construction:
    chain_hash(n) = SHA-256("{chain_hash(n-1)}:{content_hash(n)}")
    chain_hash(-1) = GENESIS_HASH (64 zeros)

The chain is per tenant.  A mutated content hash or chain hash anywhere
breaks every later link when the chain is re-walked.
"""

import hashlib
import hmac

# Seed for the first link of every tenant chain
GENESIS_HASH = "0" * 64


def hash_document(content: bytes) -> str:
    """
    Compute the SHA-256 hash of raw document bytes.

    Args:
        content: Document content.

    Returns:
        Hex-encoded SHA-256 hash (64 characters).
    """
    return hashlib.sha256(content).hexdigest()


def create_chain_hash(document_hash: str, previous_chain_hash: str) -> str:
    """
    Link a document hash onto the previous chain hash.

    Args:
        document_hash: Content hash of the document being archived.
        previous_chain_hash: Chain hash of the tenant's previous document,
            or GENESIS_HASH for the first document.

    Returns:
        Hex-encoded SHA-256 of ``"{previous_chain_hash}:{document_hash}"``.
    """
    data = f"{previous_chain_hash}:{document_hash}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def verify_document_integrity(content: bytes, expected_hash: str) -> bool:
    """Recompute the content hash and compare it with the stored one."""
    return hmac.compare_digest(hash_document(content), expected_hash)
