"""
KILT credential data model.

A credential is parsed once from its JSON form and is read-only afterwards.
"""

from __future__ import annotations

import copy
import json
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from kilt_verifier.errors import CredentialFormatError


def _require_str(data: Mapping[str, Any], key: str, where: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise CredentialFormatError(f"Missing or invalid {where}{key}: expected a string")
    return value


def _require_object(data: Mapping[str, Any], key: str, where: str = "") -> Mapping[str, Any]:
    value = data.get(key)
    if not isinstance(value, Mapping):
        raise CredentialFormatError(f"Missing or invalid {where}{key}: expected an object")
    return value


@dataclass(frozen=True)
class Claim:
    """The attested data and the DID it is about."""

    ctype_hash: str
    contents: Any
    owner: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Claim:
        """Create a Claim from its JSON object.

        ``contents`` is not validated here; a missing or non-object value is
        rejected during canonicalization.
        """
        return cls(
            ctype_hash=_require_str(data, "cTypeHash", "claim."),
            contents=copy.deepcopy(data.get("contents")),
            owner=_require_str(data, "owner", "claim."),
        )


@dataclass(frozen=True)
class ClaimerSignature:
    """Signature of the claim owner over the root hash."""

    signature: str
    key_id: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ClaimerSignature:
        return cls(
            signature=_require_str(data, "signature", "claimerSignature."),
            key_id=_require_str(data, "keyId", "claimerSignature."),
        )


@dataclass(frozen=True)
class Credential:
    """A KILT credential as presented by its holder."""

    claim: Claim
    claim_hashes: tuple[str, ...]
    claim_nonce_map: Mapping[str, str]
    claimer_signature: ClaimerSignature
    root_hash: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Credential:
        """Create a Credential from a decoded JSON document.

        Unknown top-level fields (legitimations, delegationId, ...) are ignored.

        Raises:
            CredentialFormatError: If a required field is missing or mistyped.
        """
        if not isinstance(data, Mapping):
            raise CredentialFormatError("Credential must be a JSON object")

        claim_hashes = data.get("claimHashes")
        if not isinstance(claim_hashes, list) or not all(
            isinstance(h, str) for h in claim_hashes
        ):
            raise CredentialFormatError(
                "Missing or invalid claimHashes: expected a list of strings"
            )

        nonce_map = _require_object(data, "claimNonceMap")
        if not all(isinstance(v, str) for v in nonce_map.values()):
            raise CredentialFormatError("Invalid claimNonceMap: nonces must be strings")

        return cls(
            claim=Claim.from_dict(_require_object(data, "claim")),
            claim_hashes=tuple(claim_hashes),
            claim_nonce_map=MappingProxyType(dict(nonce_map)),
            claimer_signature=ClaimerSignature.from_dict(
                _require_object(data, "claimerSignature")
            ),
            root_hash=_require_str(data, "rootHash", ""),
        )

    @classmethod
    def from_json(cls, text: str | bytes) -> Credential:
        """Parse a Credential from JSON text."""
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CredentialFormatError(f"Invalid JSON: {e}") from e
        return cls.from_dict(data)
