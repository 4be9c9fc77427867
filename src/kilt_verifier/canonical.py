"""
Claim canonicalization.

A claim is split into independent statements, each serialized as a
single-entry JSON object:

    {"@id":"did:kilt:4siD..."}
    {"kilt:ctype:0x3291...#Email":"tino@kilt.io"}

The statement hashes computed from these strings must match the ones the
issuer computed, so serialization is byte-exact: compact separators, object
keys sorted at every level and non-ASCII characters left unescaped.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from kilt_verifier.credential import Claim
from kilt_verifier.errors import InvalidClaimContents

OWNER_KEY = "@id"


def canonical_json(value: Any) -> str:
    """Serialize a JSON value deterministically.

    Raises:
        InvalidClaimContents: If the value is not representable as JSON.
    """
    try:
        return json.dumps(
            value,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError, RecursionError) as e:
        raise InvalidClaimContents(f"Invalid claim contents: {e}") from e


def statement_key(ctype_hash: str, field_name: str) -> str:
    """Build the namespaced key of a content statement."""
    return f"kilt:ctype:{ctype_hash}#{field_name}"


def canonicalize_claim(claim: Claim) -> list[str]:
    """Turn a claim into its ordered list of canonical statements.

    The owner statement comes first, followed by one statement per top-level
    field of ``contents``.

    Raises:
        InvalidClaimContents: If ``contents`` is missing or not an object.
    """
    if not isinstance(claim.contents, Mapping):
        raise InvalidClaimContents("Invalid claim contents: contents must be an object")

    statements = [canonical_json({OWNER_KEY: claim.owner})]
    for name, value in claim.contents.items():
        if not isinstance(name, str):
            raise InvalidClaimContents(f"Invalid claim contents: non-string key {name!r}")
        statements.append(canonical_json({statement_key(claim.ctype_hash, name): value}))

    return statements
