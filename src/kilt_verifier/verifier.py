"""
KILT Credential Verifier.

Verifies KILT credentials against the KILT ledger in four stages:

1. Claim contents: disclosed fields hash to entries of claimHashes
2. Root hash: claimHashes chain to the credential root hash
3. Signature: the claim owner signed the root hash with an sr25519 key of
   their on-chain DID
4. Attestation: the root hash is attested on chain, not revoked, and the
   attester is a trusted issuer

Stages run in this order and the first failure stops verification.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Collection
from dataclasses import dataclass, field
from enum import Enum
from typing import TypeVar

import sr25519

from kilt_verifier.canonical import canonicalize_claim
from kilt_verifier.config import DEFAULT_TRUSTED_ISSUERS
from kilt_verifier.credential import Credential
from kilt_verifier.digest import blake2b256, new_hasher
from kilt_verifier.encoding import (
    account_to_did,
    get_did_address,
    get_did_key_id,
    hex_decode,
    hex_encode,
)
from kilt_verifier.errors import (
    AttestationNotFound,
    AttestationRevoked,
    DidNotFound,
    InvalidClaimContents,
    InvalidDid,
    InvalidHex,
    InvalidIssuer,
    InvalidRootHash,
    InvalidSignature,
    LedgerConnectionError,
    VerificationError,
)
from kilt_verifier.ledger import AttestationRecord, DidDocument, LedgerResolver

logger = logging.getLogger(__name__)

T = TypeVar("T")

SIGNATURE_KEY_TYPE = "sr25519"
SIGNATURE_LENGTH = 64


class VerificationStatus(Enum):
    """Overall verification status."""

    VALID = "valid"
    UNVERIFIED = "unverified"
    INVALID = "invalid"
    ERROR = "error"


class VerificationStage(Enum):
    """Pipeline states, in the order they are reached."""

    START = "start"
    CONTENT_CHECKED = "content_checked"
    ROOT_HASH_CHECKED = "root_hash_checked"
    SIGNATURE_CHECKED = "signature_checked"
    ATTESTATION_CHECKED = "attestation_checked"


@dataclass
class VerificationResult:
    """Complete verification result."""

    status: VerificationStatus
    stage: VerificationStage
    owner: str | None = None
    root_hash: str | None = None
    error: VerificationError | None = None
    skipped: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        """Check if every stage ran and passed."""
        return (
            self.status == VerificationStatus.VALID
            and self.error is None
            and not self.skipped
        )

    @property
    def error_code(self) -> str | None:
        return self.error.code if self.error else None


def check_claim_contents(credential: Credential) -> None:
    """Check all disclosed contents against the credential's claim hashes.

    Each canonical statement is hashed, salted with its nonce from
    claimNonceMap and must then appear in claimHashes.

    Raises:
        InvalidClaimContents: If contents can't be canonicalized, a statement
            has no nonce, or a salted hash is not listed.
        InvalidHex: If claimHashes or claimNonceMap keys are malformed.
    """
    statements = canonicalize_claim(credential.claim)

    nonces = {hex_decode(h): nonce for h, nonce in credential.claim_nonce_map.items()}
    claim_hashes = {hex_decode(h) for h in credential.claim_hashes}

    for statement in statements:
        digest = blake2b256(statement.encode("utf-8"))
        statement_hash = hex_encode(digest)

        nonce = nonces.get(digest)
        if nonce is None:
            raise InvalidClaimContents(
                f"Invalid claim contents: no nonce for statement hash {statement_hash}"
            )

        salted_hash = blake2b256(nonce.encode("utf-8"), statement_hash.encode("utf-8"))
        if salted_hash not in claim_hashes:
            raise InvalidClaimContents(
                f"Invalid claim contents: {hex_encode(salted_hash)} not in claimHashes"
            )

    logger.debug("Claim contents match %d statement(s)", len(statements))


def compute_root_hash(claim_hashes: Collection[str]) -> bytes:
    """Chain the decoded claim hashes, in order, into one digest."""
    hasher = new_hasher()
    for claim_hash in claim_hashes:
        hasher.update(hex_decode(claim_hash))
    return hasher.digest()


def check_root_hash(credential: Credential) -> None:
    """Hashing the claim hashes together must give the credential root hash.

    Raises:
        InvalidRootHash: If the recomputed digest differs from rootHash.
        InvalidHex: If a hash is malformed.
    """
    root_hash = compute_root_hash(credential.claim_hashes)
    if root_hash != hex_decode(credential.root_hash):
        raise InvalidRootHash(
            f"Invalid root hash: computed {hex_encode(root_hash)}, "
            f"credential has {credential.root_hash}"
        )


async def _resolve(call: Awaitable[T], what: str) -> T:
    """Await a resolver call, surfacing transport failures as connection errors."""
    try:
        return await call
    except LedgerConnectionError:
        raise
    except (OSError, TimeoutError, asyncio.TimeoutError) as e:
        raise LedgerConnectionError(f"Connection error resolving {what}: {e}") from e


async def check_signature(credential: Credential, ledger: LedgerResolver) -> None:
    """Check the claimer signature against the owner's on-chain DID.

    Raises:
        InvalidDid: If the owner or key reference is malformed, the key is not
            in the DID, or it is not an sr25519 verification key.
        DidNotFound: If the owner's DID is not on chain.
        InvalidHex: If the signature or root hash is malformed.
        InvalidSignature: If the signature does not verify.
        LedgerConnectionError: If the ledger can't be queried.
    """
    owner = credential.claim.owner
    address = get_did_address(owner)

    # Lookup DID document on chain
    did_document: DidDocument | None = await _resolve(
        ledger.resolve_identity_document(address), owner
    )
    if did_document is None:
        raise DidNotFound(f"DID not found: {owner}")

    key_reference = credential.claimer_signature.key_id
    key_did, key_id = get_did_key_id(key_reference)
    if key_did != owner.split("#", 1)[0].strip():
        raise InvalidDid(f"Invalid DID: key {key_reference} does not belong to {owner}")

    public_key = did_document.get_public_key(key_id)
    if public_key is None:
        raise InvalidDid(f"Invalid DID: key {hex_encode(key_id)} not found in {owner}")

    if not public_key.is_verification_key(SIGNATURE_KEY_TYPE):
        raise InvalidDid(
            f"Invalid DID: key {hex_encode(key_id)} is a {public_key.role} "
            f"{public_key.key_type} key, not an {SIGNATURE_KEY_TYPE} verification key"
        )

    signature = hex_decode(credential.claimer_signature.signature)
    if len(signature) != SIGNATURE_LENGTH:
        raise InvalidHex(
            f"Invalid hex: signature is {len(signature)} bytes, expected {SIGNATURE_LENGTH}"
        )
    message = hex_decode(credential.root_hash)

    try:
        valid = sr25519.verify(signature, message, public_key.public_key)
    except ValueError as e:
        raise InvalidSignature(f"Invalid signature by {key_reference}: {e}") from e
    if not valid:
        raise InvalidSignature(f"Invalid signature by {key_reference}")

    logger.debug("Signature by %s verified", key_reference)


async def check_attestation(
    credential: Credential,
    allowed_issuers: Collection[str],
    ledger: LedgerResolver,
) -> None:
    """Check the root hash is attested on chain by a trusted issuer.

    Raises:
        InvalidHex: If the root hash is not 32 bytes of hex.
        AttestationNotFound: If nothing is attested under the root hash.
        AttestationRevoked: If the attestation was revoked.
        InvalidIssuer: If the attester is not in ``allowed_issuers``.
        LedgerConnectionError: If the ledger can't be queried.
    """
    root_hash = hex_decode(credential.root_hash)
    if len(root_hash) != 32:
        raise InvalidHex(f"Invalid hex: root hash is {len(root_hash)} bytes, expected 32")

    attestation: AttestationRecord | None = await _resolve(
        ledger.resolve_attestation(root_hash), credential.root_hash
    )
    if attestation is None:
        raise AttestationNotFound(f"Attestation not found: {credential.root_hash}")

    if attestation.revoked:
        raise AttestationRevoked(f"Attestation revoked: {credential.root_hash}")

    attester = account_to_did(attestation.attester)
    if attester not in allowed_issuers:
        raise InvalidIssuer(f"Invalid issuer: {attester} is not a trusted issuer")

    logger.debug("Attestation by trusted issuer %s", attester)


async def verify(
    credential: Credential,
    allowed_issuers: Collection[str],
    ledger: LedgerResolver,
) -> None:
    """Run all four checks in order, raising the first failure."""
    check_claim_contents(credential)
    check_root_hash(credential)
    await check_signature(credential, ledger)
    await check_attestation(credential, allowed_issuers, ledger)


class CredentialVerifier:
    """KILT credential verifier.

    Runs the verification pipeline and reports how far a credential got
    instead of raising.
    """

    def __init__(
        self,
        ledger: LedgerResolver | None = None,
        allowed_issuers: Collection[str] = DEFAULT_TRUSTED_ISSUERS,
        offline: bool = False,
    ) -> None:
        """Initialize the verifier.

        Args:
            ledger: Resolver for DIDs and attestations. Required unless offline.
            allowed_issuers: DIDs of trusted attesters.
            offline: Only run the checks that need no ledger access.
        """
        if ledger is None and not offline:
            raise ValueError("A ledger resolver is required unless offline=True")
        self.ledger = ledger
        self.allowed_issuers = frozenset(allowed_issuers)
        self.offline = offline

    async def verify(self, credential: Credential) -> VerificationResult:
        """Verify a credential.

        Args:
            credential: The credential to verify.

        Returns:
            VerificationResult with the stage reached and the failure, if any.
        """
        result = VerificationResult(
            status=VerificationStatus.VALID,
            stage=VerificationStage.START,
            owner=credential.claim.owner,
            root_hash=credential.root_hash,
        )

        stages = [
            (VerificationStage.CONTENT_CHECKED, self._check_contents),
            (VerificationStage.ROOT_HASH_CHECKED, self._check_root_hash),
        ]
        if self.offline:
            result.skipped = ["signature", "attestation"]
        else:
            stages += [
                (VerificationStage.SIGNATURE_CHECKED, self._check_signature),
                (VerificationStage.ATTESTATION_CHECKED, self._check_attestation),
            ]

        for next_stage, check in stages:
            try:
                await check(credential)
            except LedgerConnectionError as e:
                logger.warning("Verification of %s aborted: %s", credential.root_hash, e)
                result.status = VerificationStatus.ERROR
                result.error = e
                return result
            except VerificationError as e:
                logger.info(
                    "Credential %s failed after %s: %s",
                    credential.root_hash,
                    result.stage.value,
                    e,
                )
                result.status = VerificationStatus.INVALID
                result.error = e
                return result
            result.stage = next_stage

        if result.skipped:
            result.status = VerificationStatus.UNVERIFIED
        return result

    async def _check_contents(self, credential: Credential) -> None:
        check_claim_contents(credential)

    async def _check_root_hash(self, credential: Credential) -> None:
        check_root_hash(credential)

    async def _check_signature(self, credential: Credential) -> None:
        await check_signature(credential, self.ledger)

    async def _check_attestation(self, credential: Credential) -> None:
        await check_attestation(credential, self.allowed_issuers, self.ledger)


async def verify_credential(
    credential: Credential,
    ledger: LedgerResolver,
    allowed_issuers: Collection[str] = DEFAULT_TRUSTED_ISSUERS,
) -> VerificationResult:
    """Convenience function to verify a credential.

    Args:
        credential: The credential to verify.
        ledger: Resolver for DIDs and attestations.
        allowed_issuers: DIDs of trusted attesters.

    Returns:
        VerificationResult with the stage reached and the failure, if any.
    """
    verifier = CredentialVerifier(ledger=ledger, allowed_issuers=allowed_issuers)
    return await verifier.verify(credential)
