"""
Error types raised by the credential verification pipeline.

Every check raises one specific subclass of VerificationError and the
pipeline stops at the first one.
"""

from __future__ import annotations


class CredentialFormatError(ValueError):
    """Raised when a credential document is structurally malformed."""


class VerificationError(Exception):
    """Base class for all verification failures."""

    code = "verification_error"
    default_message = "Verification failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class InvalidClaimContents(VerificationError):
    code = "invalid_claim_contents"
    default_message = "Invalid claim contents"


class InvalidRootHash(VerificationError):
    code = "invalid_root_hash"
    default_message = "Invalid root hash"


class InvalidDid(VerificationError):
    code = "invalid_did"
    default_message = "Invalid DID"


class DidNotFound(VerificationError):
    code = "did_not_found"
    default_message = "DID not found"


class InvalidSignature(VerificationError):
    code = "invalid_signature"
    default_message = "Invalid signature"


class AttestationNotFound(VerificationError):
    code = "attestation_not_found"
    default_message = "Attestation not found"


class AttestationRevoked(VerificationError):
    code = "attestation_revoked"
    default_message = "Attestation revoked"


class InvalidIssuer(VerificationError):
    code = "invalid_issuer"
    default_message = "Invalid issuer"


class InvalidHex(VerificationError):
    code = "invalid_hex"
    default_message = "Invalid hex"


class LedgerConnectionError(VerificationError):
    """Raised when the ledger cannot be queried (network, timeout, RPC error)."""

    code = "connection_error"
    default_message = "Connection error"
