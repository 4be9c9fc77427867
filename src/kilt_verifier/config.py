"""Default settings for the verifier and the kilt-verify command."""

from __future__ import annotations

# SS58 network prefix of the KILT chain
KILT_SS58_PREFIX = 38

DEFAULT_ENDPOINT = "wss://spiritnet.kilt.io:443"

DEFAULT_TIMEOUT = 30.0

DEFAULT_TRUSTED_ISSUERS: tuple[str, ...] = (
    "did:kilt:4pnfkRn5UurBJTW92d9TaVLR2CqJdY4z5HPjrEbpGyBykare",  # socialkyc.io
)
