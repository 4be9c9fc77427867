"""
Ledger resolver backed by a KILT node.

Reads DIDs from ``Did.Did`` and attestations from ``Attestation.Attestations``
storage over the node's websocket RPC.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Iterable, Mapping
from typing import Any

from scalecodec.utils.ss58 import ss58_decode
from substrateinterface import SubstrateInterface
from substrateinterface.exceptions import SubstrateRequestException
from websocket import WebSocketException

from kilt_verifier.config import DEFAULT_ENDPOINT, DEFAULT_TIMEOUT, KILT_SS58_PREFIX
from kilt_verifier.encoding import DID_PREFIX, address_to_account_id, hex_decode, hex_encode
from kilt_verifier.errors import InvalidHex, LedgerConnectionError
from kilt_verifier.ledger import AttestationRecord, DidDocument, DidPublicKey

logger = logging.getLogger(__name__)

_KEY_ROLES = {
    "PublicVerificationKey": DidPublicKey.VERIFICATION,
    "PublicEncryptionKey": DidPublicKey.ENCRYPTION,
}


class LedgerFormatError(ValueError):
    """Raised when a storage value does not have the expected shape."""


def _account_bytes(value: Any) -> bytes:
    """Normalize an AccountId storage value (hex or SS58) to 32 bytes."""
    if isinstance(value, (bytes, bytearray)):
        account = bytes(value)
    elif isinstance(value, str) and value.startswith("0x"):
        account = hex_decode(value)
    elif isinstance(value, str):
        account = hex_decode(ss58_decode(value))
    else:
        raise LedgerFormatError(f"Unexpected account id value: {value!r}")
    if len(account) != 32:
        raise LedgerFormatError(f"Unexpected account id length: {len(account)}")
    return account


def _map_items(value: Any) -> Iterable[tuple[Any, Any]]:
    """Iterate a decoded BTreeMap, given either as a dict or as key/value pairs."""
    if isinstance(value, Mapping):
        return value.items()
    if isinstance(value, list):
        return [(item[0], item[1]) for item in value]
    raise LedgerFormatError(f"Unexpected map value: {value!r}")


def parse_did_public_key(key_id: Any, details: Mapping[str, Any]) -> DidPublicKey:
    """Parse a ``public_keys`` entry of a decoded DidDetails value.

    ``details["key"]`` is the DidPublicKey enum, e.g.
    ``{"PublicVerificationKey": {"Sr25519": "0x..."}}``.
    """
    key = details.get("key")
    if not isinstance(key, Mapping) or len(key) != 1:
        raise LedgerFormatError(f"Unexpected DID public key value: {key!r}")

    variant, inner = next(iter(key.items()))
    if variant not in _KEY_ROLES or not isinstance(inner, Mapping) or len(inner) != 1:
        raise LedgerFormatError(f"Unexpected DID public key value: {key!r}")

    key_type, public_key = next(iter(inner.items()))
    return DidPublicKey(
        key_id=hex_decode(key_id),
        role=_KEY_ROLES[variant],
        key_type=key_type.lower(),
        public_key=hex_decode(public_key),
    )


def parse_did_details(address: str, value: Mapping[str, Any]) -> DidDocument:
    """Build a DidDocument from a decoded ``Did.Did`` storage value."""
    public_keys = tuple(
        parse_did_public_key(key_id, details)
        for key_id, details in _map_items(value.get("public_keys", []))
    )
    return DidDocument(did=DID_PREFIX + address, public_keys=public_keys)


def parse_attestation_details(value: Mapping[str, Any]) -> AttestationRecord:
    """Build an AttestationRecord from a decoded ``Attestation.Attestations`` value."""
    return AttestationRecord(
        attester=_account_bytes(value.get("attester")),
        revoked=bool(value.get("revoked")),
    )


class KiltChainResolver:
    """LedgerResolver reading from a KILT node.

    The substrate client is blocking, so queries run in a worker thread and
    are serialized over the single websocket connection.
    """

    def __init__(
        self,
        url: str = DEFAULT_ENDPOINT,
        timeout: float = DEFAULT_TIMEOUT,
        substrate: SubstrateInterface | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            url: Websocket endpoint of a KILT node.
            timeout: Socket timeout in seconds.
            substrate: Existing client to use instead of connecting to ``url``.
        """
        self.url = url
        self.timeout = timeout
        self._substrate = substrate
        self._lock = threading.Lock()

    def _connect(self) -> SubstrateInterface:
        if self._substrate is None:
            logger.debug("Connecting to %s", self.url)
            try:
                self._substrate = SubstrateInterface(
                    url=self.url,
                    ss58_format=KILT_SS58_PREFIX,
                    ws_options={"timeout": self.timeout},
                )
            except (WebSocketException, OSError) as e:
                raise LedgerConnectionError(
                    f"Connection error: could not connect to {self.url}: {e}"
                ) from e
        return self._substrate

    def _query(self, module: str, storage_function: str, params: list[Any]) -> Any:
        """Read a storage entry, returning its decoded value or None."""
        with self._lock:
            substrate = self._connect()
            try:
                result = substrate.query(module, storage_function, params)
            except (SubstrateRequestException, WebSocketException, OSError) as e:
                raise LedgerConnectionError(
                    f"Connection error querying {module}.{storage_function}: {e}"
                ) from e
        return None if result is None else result.value

    def _get_did(self, address: str) -> DidDocument | None:
        account_id = address_to_account_id(address)
        value = self._query("Did", "Did", [hex_encode(account_id)])
        if value is None:
            return None
        return parse_did_details(address, value)

    def _get_attestation(self, root_hash: bytes) -> AttestationRecord | None:
        value = self._query("Attestation", "Attestations", [hex_encode(root_hash)])
        if value is None:
            return None
        return parse_attestation_details(value)

    async def resolve_identity_document(self, address: str) -> DidDocument | None:
        try:
            return await asyncio.to_thread(self._get_did, address)
        except (ValueError, InvalidHex) as e:
            raise LedgerConnectionError(f"Unexpected DID data for {address}: {e}") from e

    async def resolve_attestation(self, root_hash: bytes) -> AttestationRecord | None:
        try:
            return await asyncio.to_thread(self._get_attestation, root_hash)
        except (ValueError, InvalidHex) as e:
            raise LedgerConnectionError(
                f"Unexpected attestation data for {hex_encode(root_hash)}: {e}"
            ) from e

    def close(self) -> None:
        """Close the websocket connection."""
        with self._lock:
            if self._substrate is not None:
                self._substrate.close()
                self._substrate = None
