"""Blake2b-256, the digest used for statement, salted and root hashes."""

from __future__ import annotations

import hashlib

DIGEST_SIZE = 32


def new_hasher() -> "hashlib._Hash":
    """Return an incremental Blake2b hasher with a 256-bit output."""
    return hashlib.blake2b(digest_size=DIGEST_SIZE)


def blake2b256(*parts: bytes) -> bytes:
    """Digest the concatenation of ``parts``."""
    hasher = new_hasher()
    for part in parts:
        hasher.update(part)
    return hasher.digest()
