"""
KILT Verifier - KILT credential verification library.

Supports:
- Selective-disclosure claim hashes (Blake2b-256, nonce-salted)
- Root hash recomputation
- sr25519 claimer signatures resolved from on-chain KILT DIDs
- On-chain attestation revocation and trusted-issuer checks
"""

from kilt_verifier.credential import Claim, ClaimerSignature, Credential
from kilt_verifier.errors import CredentialFormatError, VerificationError
from kilt_verifier.ledger import AttestationRecord, DidDocument, DidPublicKey, LedgerResolver
from kilt_verifier.verifier import (
    CredentialVerifier,
    VerificationResult,
    check_attestation,
    check_claim_contents,
    check_root_hash,
    check_signature,
    verify,
    verify_credential,
)

__version__ = "0.1.0"

__all__ = [
    "AttestationRecord",
    "Claim",
    "ClaimerSignature",
    "Credential",
    "CredentialFormatError",
    "CredentialVerifier",
    "DidDocument",
    "DidPublicKey",
    "LedgerResolver",
    "VerificationError",
    "VerificationResult",
    "check_attestation",
    "check_claim_contents",
    "check_root_hash",
    "check_signature",
    "verify",
    "verify_credential",
]
