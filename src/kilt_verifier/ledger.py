"""
Ledger records consumed by the verifier and the resolver interface.

The verifier never talks to a chain directly: it is handed an object that
implements LedgerResolver. kilt_verifier.kilt provides the implementation
backed by a KILT node.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class DidPublicKey:
    """A public key entry of an on-chain DID."""

    key_id: bytes
    role: str
    key_type: str
    public_key: bytes

    VERIFICATION = "verification"
    ENCRYPTION = "encryption"

    def is_verification_key(self, key_type: str) -> bool:
        """Check if this is a verification key of the given scheme."""
        return self.role == self.VERIFICATION and self.key_type == key_type


@dataclass(frozen=True)
class DidDocument:
    """Current key set of an on-chain DID."""

    did: str
    public_keys: tuple[DidPublicKey, ...]

    def get_public_key(self, key_id: bytes) -> DidPublicKey | None:
        """Get a public key by its 32-byte key id."""
        for key in self.public_keys:
            if key.key_id == key_id:
                return key
        return None


@dataclass(frozen=True)
class AttestationRecord:
    """On-chain attestation of a credential root hash."""

    attester: bytes
    revoked: bool


class LedgerResolver(Protocol):
    """Read access to the DID and attestation storage of the ledger.

    Both methods return None when nothing is stored under the key and raise
    LedgerConnectionError when the ledger cannot be reached.
    """

    async def resolve_identity_document(self, address: str) -> DidDocument | None:
        ...

    async def resolve_attestation(self, root_hash: bytes) -> AttestationRecord | None:
        ...
