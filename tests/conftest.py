"""Shared fixtures: the reference credential, an in-memory ledger and signing keys."""

import copy

import pytest
import sr25519

from kilt_verifier.canonical import canonicalize_claim
from kilt_verifier.credential import Claim
from kilt_verifier.digest import blake2b256
from kilt_verifier.encoding import get_did_account_id, get_did_address, hex_encode
from kilt_verifier.errors import LedgerConnectionError
from kilt_verifier.ledger import AttestationRecord, DidDocument, DidPublicKey
from kilt_verifier.verifier import compute_root_hash


OWNER = "did:kilt:4siDmerNEBREZJsFoLM95x6cxEho73bCWKEDAXrKdou4a3mH"
CTYPE_HASH = "0x3291bb126e33b4862d421bfaa1d2f272e6cdfc4f96658988fbcffea8914bd9ac"
KEY_ID = bytes.fromhex("78579576fa15684e5d868c9e123d62d471f1a95d8f9fc8032179d3735069784d")
TRUSTED_ISSUER = "did:kilt:4pnfkRn5UurBJTW92d9TaVLR2CqJdY4z5HPjrEbpGyBykare"  # socialkyc.io

EXAMPLE_CREDENTIAL = {
    "claim": {
        "cTypeHash": CTYPE_HASH,
        "contents": {
            "Email": "tino@kilt.io",
        },
        "owner": OWNER,
    },
    "claimHashes": [
        "0x2192b61d3f3109920e8991952a3fad9b7158e4fcac96dcfb873d5e975ba057e4",
        "0x2ef47f014e20bb908595f71ff022a53d7d84b5370dfed18479d4eee0575483c9",
    ],
    "claimNonceMap": {
        "0x0e0d56f241309d5a06ddf94e01d97d946f9b004d4f847302f050e5accf429c83": "5f25a0d1-b68f-4e06-a003-26c391935540",
        "0x758777288cc6705af9fb1b65f00647da18f696458ccbc59c4de0d50873e2b19d": "c57e9c72-fa8a-4e4f-b60f-a20234317bda",
    },
    "legitimations": [],
    "delegationId": None,
    "rootHash": "0xf69ce26ca50b5d5f38cd32a99d031cd52fff42f17b9afb32895ffba260fb616a",
    "claimerSignature": {
        "keyId": OWNER + "#0x78579576fa15684e5d868c9e123d62d471f1a95d8f9fc8032179d3735069784d",
        "signature": "0x6243baecdfa9c752161f501597bafbb0242db1174bb8362c18d6e51bdbbdf041997fb736a07dcf56cb023687c4cc044ffba39e0dfcf01b7caa00f0f8b4fbbd81",
    },
}


class InMemoryLedger:
    """LedgerResolver over plain dicts, recording every lookup."""

    def __init__(self, dids=None, attestations=None):
        self.dids = dict(dids or {})
        self.attestations = dict(attestations or {})
        self.calls = []

    async def resolve_identity_document(self, address):
        self.calls.append(("did", address))
        return self.dids.get(address)

    async def resolve_attestation(self, root_hash):
        self.calls.append(("attestation", root_hash))
        return self.attestations.get(root_hash)

    def close(self):
        pass


class UnreachableLedger:
    """LedgerResolver whose every lookup fails."""

    def __init__(self, error=None):
        self.error = error or LedgerConnectionError("Connection error: node unreachable")
        self.calls = []

    async def resolve_identity_document(self, address):
        self.calls.append(("did", address))
        raise self.error

    async def resolve_attestation(self, root_hash):
        self.calls.append(("attestation", root_hash))
        raise self.error

    def close(self):
        pass


def make_keypair(seed_byte: int):
    """Deterministic sr25519 key pair (public, private)."""
    return sr25519.pair_from_seed(bytes([seed_byte]) * 32)


def did_document(owner, keypair, key_id=KEY_ID, role=DidPublicKey.VERIFICATION, key_type="sr25519"):
    """DID document holding a single key of the given pair."""
    return DidDocument(
        did=owner,
        public_keys=(
            DidPublicKey(key_id=key_id, role=role, key_type=key_type, public_key=keypair[0]),
        ),
    )


def build_credential(
    contents,
    keypair,
    owner=OWNER,
    ctype_hash=CTYPE_HASH,
    key_id=KEY_ID,
):
    """Build a credential document the way an issuer would, signed with ``keypair``."""
    claim = Claim(ctype_hash=ctype_hash, contents=contents, owner=owner)

    nonce_map = {}
    claim_hashes = []
    for index, statement in enumerate(canonicalize_claim(claim)):
        statement_hash = hex_encode(blake2b256(statement.encode("utf-8")))
        nonce = f"00000000-0000-4000-8000-{index:012d}"
        nonce_map[statement_hash] = nonce
        claim_hashes.append(
            hex_encode(blake2b256(nonce.encode("utf-8"), statement_hash.encode("utf-8")))
        )

    root_hash = compute_root_hash(claim_hashes)
    signature = sr25519.sign(keypair, root_hash)

    return {
        "claim": {"cTypeHash": ctype_hash, "contents": copy.deepcopy(contents), "owner": owner},
        "claimHashes": claim_hashes,
        "claimNonceMap": nonce_map,
        "claimerSignature": {
            "keyId": f"{owner}#{hex_encode(key_id)}",
            "signature": hex_encode(signature),
        },
        "rootHash": hex_encode(root_hash),
    }


@pytest.fixture
def example_credential():
    """The reference credential document (fresh copy per test)."""
    return copy.deepcopy(EXAMPLE_CREDENTIAL)


@pytest.fixture
def keypair():
    return make_keypair(1)


@pytest.fixture
def trusted_attester():
    return get_did_account_id(TRUSTED_ISSUER)


@pytest.fixture
def signed_example(example_credential, keypair):
    """The reference credential re-signed with a test key under its original key id."""
    document = copy.deepcopy(example_credential)
    root_hash = bytes.fromhex(document["rootHash"][2:])
    document["claimerSignature"]["signature"] = hex_encode(sr25519.sign(keypair, root_hash))
    return document


@pytest.fixture
def ledger(signed_example, keypair, trusted_attester):
    """Ledger on which the signed reference credential fully verifies."""
    root_hash = bytes.fromhex(signed_example["rootHash"][2:])
    return InMemoryLedger(
        dids={get_did_address(OWNER): did_document(OWNER, keypair)},
        attestations={root_hash: AttestationRecord(attester=trusted_attester, revoked=False)},
    )
