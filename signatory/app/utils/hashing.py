"""
Hashing primitives for document fingerprinting.

This module hashes bytes, and bytes only. Fetching, decoding and URL
handling happen in the fingerprinter.

Hashes produced here bind a signature to an exact document version.
They are not used to authenticate identities.
"""

import hashlib
from typing import Union


def compute_sha256_hex(content: Union[bytes, bytearray]) -> str:
    """
    Compute the lowercase hex SHA-256 digest of raw content bytes.

    Args:
        content:
            The exact bytes fetched from the governing document's
            raw-content location. No newline or encoding normalisation
            is applied.

    Returns:
        64-character lowercase hex digest, without an algorithm prefix
        (the ledger stores bare digests).
    """
    if not isinstance(content, (bytes, bytearray)):
        raise TypeError(
            "compute_sha256_hex expects bytes, "
            f"got {type(content).__name__}"
        )

    return hashlib.sha256(content).hexdigest()
