"""Tests for claim canonicalization."""

import pytest

from kilt_verifier.canonical import canonical_json, canonicalize_claim
from kilt_verifier.credential import Claim
from kilt_verifier.errors import InvalidClaimContents

from conftest import CTYPE_HASH, OWNER


class TestCanonicalJson:
    """Tests for the deterministic serializer."""

    def test_sort_keys(self):
        """Test that keys are sorted at every level."""
        data = {"z": 1, "a": {"y": True, "b": None}, "m": [3, {"k": "v", "c": 1.5}]}
        assert canonical_json(data) == '{"a":{"b":null,"y":true},"m":[3,{"c":1.5,"k":"v"}],"z":1}'

    def test_unicode_preserved(self):
        """Test that non-ASCII characters are not escaped."""
        assert canonical_json({"name": "Jürgen Müller"}) == '{"name":"Jürgen Müller"}'

    def test_nan_rejected(self):
        """Test that NaN is not serialized."""
        with pytest.raises(InvalidClaimContents):
            canonical_json({"value": float("nan")})

    def test_unserializable_rejected(self):
        """Test that non-JSON values raise InvalidClaimContents."""
        with pytest.raises(InvalidClaimContents):
            canonical_json({"value": object()})

    def test_deep_nesting_rejected(self):
        """Test that deeply nested contents raise InvalidClaimContents."""
        value = []
        for _ in range(100_000):
            value = [value]
        with pytest.raises(InvalidClaimContents):
            canonical_json({"a": value})


class TestCanonicalizeClaim:
    """Tests for statement generation."""

    def test_owner_statement_first(self):
        """Test the owner statement and one statement per content field."""
        claim = Claim(ctype_hash=CTYPE_HASH, contents={"Email": "tino@kilt.io"}, owner=OWNER)
        assert canonicalize_claim(claim) == [
            '{"@id":"' + OWNER + '"}',
            '{"kilt:ctype:' + CTYPE_HASH + '#Email":"tino@kilt.io"}',
        ]

    def test_nested_values(self):
        """Test that field values keep their JSON type."""
        claim = Claim(
            ctype_hash="0x01",
            contents={"Age": 42, "Verified": False, "Address": {"zip": "10115", "city": "Berlin"}},
            owner=OWNER,
        )
        statements = canonicalize_claim(claim)
        assert statements[1:] == [
            '{"kilt:ctype:0x01#Age":42}',
            '{"kilt:ctype:0x01#Verified":false}',
            '{"kilt:ctype:0x01#Address":{"city":"Berlin","zip":"10115"}}',
        ]

    def test_empty_contents(self):
        """Test that empty contents yield only the owner statement."""
        claim = Claim(ctype_hash=CTYPE_HASH, contents={}, owner=OWNER)
        assert canonicalize_claim(claim) == ['{"@id":"' + OWNER + '"}']

    @pytest.mark.parametrize("contents", [None, [], "tino@kilt.io", 42])
    def test_contents_must_be_object(self, contents):
        """Test that missing or non-object contents raise InvalidClaimContents."""
        claim = Claim(ctype_hash=CTYPE_HASH, contents=contents, owner=OWNER)
        with pytest.raises(InvalidClaimContents):
            canonicalize_claim(claim)
