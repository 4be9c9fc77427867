"""
Byte and identifier encodings used by KILT credentials.

- Hex strings: lowercase, "0x"-prefixed on output; lenient on input.
- SS58 account addresses (KILT network prefix 38).
- KILT DIDs: ``did:kilt:<ss58 address>`` and key references
  ``did:kilt:<ss58 address>#0x<key id>``.
"""

from __future__ import annotations

import re

from scalecodec.utils.ss58 import ss58_decode, ss58_encode

from kilt_verifier.config import KILT_SS58_PREFIX
from kilt_verifier.errors import InvalidDid, InvalidHex

DID_PREFIX = "did:kilt:"

_HEX_RE = re.compile(r"[0-9a-fA-F]*")


def hex_encode(data: bytes) -> str:
    """Encode bytes as a "0x"-prefixed lowercase hex string."""
    return "0x" + bytes(data).hex()


def hex_decode(value: str) -> bytes:
    """Decode a hex string.

    Surrounding whitespace and an optional "0x"/"0X" prefix are ignored and
    either letter case is accepted.

    Raises:
        InvalidHex: If the value is not a string of an even number of hex digits.
    """
    if not isinstance(value, str):
        raise InvalidHex(f"Invalid hex: expected a string, got {type(value).__name__}")

    digits = value.strip()
    if digits[:2] in ("0x", "0X"):
        digits = digits[2:]

    if not _HEX_RE.fullmatch(digits):
        raise InvalidHex(f"Invalid hex: invalid character in {value!r}")
    if len(digits) % 2:
        raise InvalidHex(f"Invalid hex: odd length in {value!r}")

    return bytes.fromhex(digits)


def address_to_account_id(address: str, ss58_format: int | None = KILT_SS58_PREFIX) -> bytes:
    """Decode an SS58 address into its 32-byte account id.

    Raises:
        ValueError: If the address is not valid SS58 or has another network prefix.
    """
    if address.startswith(("0x", "0X")):
        raise ValueError(f"Not an SS58 address: {address}")
    account_id = hex_decode(ss58_decode(address, valid_ss58_format=ss58_format))
    if len(account_id) != 32:
        raise ValueError(f"Unexpected account id length {len(account_id)} in {address}")
    return account_id


def account_to_did(account_id: bytes) -> str:
    """Build the KILT DID string for a 32-byte account id."""
    return DID_PREFIX + ss58_encode(bytes(account_id), ss58_format=KILT_SS58_PREFIX)


def get_did_address(did: str) -> str:
    """Return the SS58 address portion of a full KILT DID.

    A key fragment (``#...``) is ignored.

    Raises:
        InvalidDid: If the value is not a full KILT DID with a valid address.
    """
    base_did = did.split("#", 1)[0].strip() if isinstance(did, str) else ""
    if not base_did.startswith(DID_PREFIX):
        raise InvalidDid(f"Invalid DID: {did!r} is not a did:kilt identifier")

    address = base_did[len(DID_PREFIX):]
    # light DIDs (did:kilt:light:...) are not anchored on chain
    if not address or ":" in address:
        raise InvalidDid(f"Invalid DID: unsupported KILT DID {did!r}")

    try:
        address_to_account_id(address)
    except (ValueError, IndexError, InvalidHex) as e:
        raise InvalidDid(f"Invalid DID: {did!r} has a malformed address") from e

    return address


def get_did_account_id(did: str) -> bytes:
    """Return the 32-byte account id a KILT DID is derived from."""
    return address_to_account_id(get_did_address(did))


def get_did_key_id(key_reference: str) -> tuple[str, bytes]:
    """Split a DID key reference into its DID and 32-byte key id.

    ``did:kilt:4siD...#0x7857...`` -> ("did:kilt:4siD...", b"\\x78\\x57...")

    Raises:
        InvalidDid: If the reference has no fragment or the fragment is not
            a 32-byte hex key id.
    """
    if not isinstance(key_reference, str) or "#" not in key_reference:
        raise InvalidDid(f"Invalid DID: key reference {key_reference!r} has no key id")

    did, fragment = key_reference.split("#", 1)
    try:
        key_id = hex_decode(fragment)
    except InvalidHex as e:
        raise InvalidDid(f"Invalid DID: malformed key id in {key_reference!r}") from e

    if len(key_id) != 32:
        raise InvalidDid(f"Invalid DID: key id in {key_reference!r} is not 32 bytes")

    return did.strip(), key_id
