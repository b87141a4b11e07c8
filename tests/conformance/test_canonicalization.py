"""
Canonicalization Conformance Tests

INVARIANT: Every payload has exactly one byte encoding.

    ∀ payload P valid for layout L:
        decode(encode(P)) = P
        encode(P) = encode(P')  ⟺  P = P'

    ∀ bytes B:
        decode(B) succeeds ⟹ encode(decode(B)) = B   (strict decoding)
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from solders.pubkey import Pubkey

from pdastore import DecodeError, RecordLayout, BOOL, U8, STRING
from pdastore.programs.note import NOTE, NOTE_INDEX, INSTRUCTIONS as NOTE_INSTRUCTIONS
from pdastore.programs.token_metadata import METADATA


pubkeys = st.binary(min_size=32, max_size=32).map(Pubkey.from_bytes)
u64s = st.integers(min_value=0, max_value=2**64 - 1)
i64s = st.integers(min_value=-2**63, max_value=2**63 - 1)

notes = st.fixed_dictionaries({
    "authority": pubkeys,
    "note_id": u64s,
    "created_at": i64s,
    "updated_at": i64s,
    "message": st.text(max_size=100),
})

indexes = st.fixed_dictionaries({
    "authority": pubkeys,
    "note_count": u64s,
    "note_ids": st.lists(u64s, max_size=20),
})

metadata = st.fixed_dictionaries({
    "mint": pubkeys,
    "authority": pubkeys,
    "name": st.text(max_size=30),
    "symbol": st.text(max_size=10),
    "icon": st.text(max_size=30),
    "home": st.text(max_size=30),
})

FLAGS = RecordLayout("Flags", ("enabled", BOOL), ("level", U8), ("label", STRING))

# Byte strings that often get past the fixed fields and the length prefix
flag_bytes = st.tuples(
    st.binary(min_size=2, max_size=2),
    st.integers(min_value=0, max_value=6),
    st.binary(max_size=8),
).map(lambda t: t[0] + t[1].to_bytes(4, "little") + t[2])


class TestCanonicalizationProperties:
    """Property-based encoding tests."""

    @given(notes)
    @settings(max_examples=100)
    def test_note_round_trip(self, payload):
        """
        PROPERTY: A note decodes to exactly what was encoded.
        """
        data = NOTE.encode(payload)
        assert NOTE.decode(data) == payload
        assert len(data) == NOTE.encoded_size(payload)

    @given(indexes)
    @settings(max_examples=100)
    def test_index_round_trip(self, payload):
        """
        PROPERTY: Variable-length u64 lists survive encoding.
        """
        assert NOTE_INDEX.decode(NOTE_INDEX.encode(payload)) == payload

    @given(metadata, metadata)
    @settings(max_examples=100)
    def test_encoding_is_injective(self, a, b):
        """
        PROPERTY: Distinct payloads never share an encoding.
        """
        assert (METADATA.encode(a) == METADATA.encode(b)) == (a == b)

    @given(notes, st.integers(min_value=1, max_value=64))
    @settings(max_examples=50)
    def test_zero_padding_only_with_allow_padding(self, payload, padding):
        """
        PROPERTY: Trailing zeros are accepted only when padding is allowed.
        """
        data = NOTE.encode(payload) + bytes(padding)
        assert NOTE.decode(data, allow_padding=True) == payload
        with pytest.raises(DecodeError):
            NOTE.decode(data)

    @given(u64s, st.text(max_size=50))
    @settings(max_examples=100)
    def test_instruction_round_trip(self, note_id, message):
        """
        PROPERTY: Instruction data decodes to the same variant and arguments.
        """
        data = NOTE_INSTRUCTIONS.encode("Update", note_id=note_id, message=message)
        decoded = NOTE_INSTRUCTIONS.decode(data)
        assert decoded.name == "Update"
        assert decoded.discriminator == 1
        assert decoded.args == {"note_id": note_id, "message": message}

    @given(st.one_of(st.binary(max_size=16), flag_bytes))
    @settings(max_examples=300)
    def test_decoding_is_strict(self, data):
        """
        PROPERTY: Bytes that decode re-encode to exactly the same bytes.
        """
        try:
            payload = FLAGS.decode(data)
        except DecodeError:
            return
        assert FLAGS.encode(payload) == data

    @given(st.binary(max_size=64))
    @settings(max_examples=200)
    def test_index_decoding_is_strict(self, data):
        """
        PROPERTY: Arbitrary bytes either fail to decode or re-encode unchanged.
        """
        try:
            payload = NOTE_INDEX.decode(data)
        except DecodeError:
            return
        assert NOTE_INDEX.encode(payload) == data


class TestCanonicalizationExamples:
    """Example-based encoding tests."""

    def test_note_layout_is_little_endian(self):
        authority = Pubkey.default()
        data = NOTE.encode({
            "authority": authority,
            "note_id": 1,
            "created_at": -1,
            "updated_at": 0,
            "message": "hi",
        })
        assert data[:32] == bytes(authority)
        assert data[32:40] == (1).to_bytes(8, "little")
        assert data[40:48] == b"\xff" * 8
        assert data[48:56] == bytes(8)
        assert data[56:] == b"\x02\x00\x00\x00hi"

    def test_non_canonical_bool_is_rejected(self):
        with pytest.raises(DecodeError):
            FLAGS.decode(b"\x05\x00\x00\x00\x00\x00")
        assert FLAGS.decode(b"\x01\x00\x00\x00\x00\x00") == {"enabled": True, "level": 0, "label": ""}
