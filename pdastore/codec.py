"""
codec.py - Canonical binary layouts for records and instructions

Records and instruction arguments share one encoding:
    - fixed-width little-endian integers (u8, u32, u64, i64) and 1-byte bools
      (0 or 1 only)
    - 32-byte identifiers (Pubkey)
    - variable-length strings and u64 vectors, prefixed by a u32 length/count
      (no terminator, no implicit truncation)

Every layout places its fixed-width fields before any variable-length field, so the
offset of each fixed field is known without decoding the record.

Decoding is strict. Missing bytes are always an error. Trailing bytes are an error
unless the caller is decoding an over-allocated record (allow_padding=True), in
which case trailing bytes must all be zero. Decoding never reads past the schema.

Instructions are [u8 discriminator][args]. An InstructionSet is the closed,
versioned discriminator -> schema table for one program; the discriminator is
resolved before any argument byte is read.
"""

from __future__ import annotations
from dataclasses import dataclass
import io
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from construct import (
    Adapter, Bytes, Construct, ConstructError, Int8ul, Int32ul, Int64sl,
    Int64ul, ListContainer, PascalString, PrefixedArray, Struct, ValidationError,
)
from solders.pubkey import Pubkey

from .core import (
    Payload, DecodeError, EncodeError, InvalidInstruction, UnknownDiscriminator,
)


# ============================================================================
# FIELD TYPES
# ============================================================================

class _BoolAdapter(Adapter):
    """One byte, 0 or 1 <-> bool. Any other byte is rejected."""

    def _decode(self, obj, context, path):
        if obj not in (0, 1):
            raise ValidationError(f"bool byte must be 0 or 1, got {obj}", path=path)
        return obj == 1

    def _encode(self, obj, context, path):
        if not isinstance(obj, bool):
            raise TypeError(f"expected bool, got {type(obj).__name__}")
        return int(obj)


class _PubkeyAdapter(Adapter):
    """32 raw bytes <-> Pubkey."""

    def _decode(self, obj, context, path):
        return Pubkey.from_bytes(obj)

    def _encode(self, obj, context, path):
        if not isinstance(obj, Pubkey):
            raise TypeError(f"expected Pubkey, got {type(obj).__name__}")
        return bytes(obj)


@dataclass(frozen=True, slots=True)
class FieldType:
    """
    Encoding of a single field.

    Attributes:
        name: Type name used in messages (e.g. "u64").
        subcon: The construct that encodes the field.
        size: Encoded width in bytes, or None for length-prefixed fields.
    """
    name: str
    subcon: Construct
    size: Optional[int]

    @property
    def is_fixed(self) -> bool:
        return self.size is not None


U8 = FieldType("u8", Int8ul, 1)
U32 = FieldType("u32", Int32ul, 4)
U64 = FieldType("u64", Int64ul, 8)
I64 = FieldType("i64", Int64sl, 8)
BOOL = FieldType("bool", _BoolAdapter(Int8ul), 1)
PUBKEY = FieldType("pubkey", _PubkeyAdapter(Bytes(32)), 32)
STRING = FieldType("string", PascalString(Int32ul, "utf8"), None)
U64_VEC = FieldType("u64_vec", PrefixedArray(Int32ul, Int64ul), None)

# Decode errors the construct stack can surface besides ConstructError
_DECODE_ERRORS = (ConstructError, UnicodeDecodeError, ValueError)
_ENCODE_ERRORS = (ConstructError, UnicodeEncodeError, TypeError, ValueError, AttributeError)


def _plain(value: Any) -> Any:
    if isinstance(value, ListContainer):
        return list(value)
    return value


# ============================================================================
# RECORD LAYOUTS
# ============================================================================

class RecordLayout:
    """
    Binary schema for one record type or one instruction's arguments.

    Example:
        NOTE = RecordLayout(
            "Note",
            ("authority", PUBKEY),
            ("note_id", U64),
            ("message", STRING),
        )
        data = NOTE.encode({"authority": alice, "note_id": 0, "message": "hi"})
        NOTE.decode(data) == {"authority": alice, "note_id": 0, "message": "hi"}
    """

    def __init__(
        self,
        name: str,
        *fields: Tuple[str, FieldType],
        authority_field: Optional[str] = "authority",
    ):
        names = [field_name for field_name, _ in fields]
        if len(set(names)) != len(names):
            raise ValueError(f"{name}: duplicate field names in {names}")

        seen_variable = False
        offsets: Dict[str, int] = {}
        offset = 0
        for field_name, ftype in fields:
            if ftype.is_fixed:
                if seen_variable:
                    raise ValueError(
                        f"{name}: fixed field {field_name!r} follows a variable-length field"
                    )
                offsets[field_name] = offset
                offset += ftype.size
            else:
                seen_variable = True

        if authority_field is not None and authority_field not in names:
            authority_field = None

        self.name = name
        self.fields: Tuple[Tuple[str, FieldType], ...] = tuple(fields)
        self.field_names: Tuple[str, ...] = tuple(names)
        self.authority_field = authority_field
        self.fixed_size = offset
        self._offsets = offsets
        self._struct = Struct(*[field_name / ftype.subcon for field_name, ftype in fields])

    @property
    def is_fixed(self) -> bool:
        """True if every field is fixed-width (the encoded size never changes)."""
        return all(ftype.is_fixed for _, ftype in self.fields)

    def offset_of(self, field_name: str) -> int:
        """
        Byte offset of a fixed-width field.

        Raises:
            KeyError: If the field is unknown or variable-length.
        """
        if field_name not in self._offsets:
            raise KeyError(f"{self.name}.{field_name} is not a fixed-width field")
        return self._offsets[field_name]

    def encode(self, value: Mapping[str, Any]) -> bytes:
        """
        Encode a payload.

        Raises:
            EncodeError: On missing or unknown fields, wrong types or out-of-range values.
        """
        missing = [n for n in self.field_names if n not in value]
        if missing:
            raise EncodeError(f"{self.name}: missing fields {missing}")
        unknown = [k for k in value if k not in self.field_names]
        if unknown:
            raise EncodeError(f"{self.name}: unknown fields {unknown}")
        try:
            return self._struct.build({n: value[n] for n in self.field_names})
        except _ENCODE_ERRORS as e:
            raise EncodeError(f"{self.name}: {e}") from e

    def encoded_size(self, value: Mapping[str, Any]) -> int:
        return len(self.encode(value))

    def decode(self, data: bytes, allow_padding: bool = False) -> Payload:
        """
        Decode exactly one payload from data.

        Args:
            data: Encoded bytes.
            allow_padding: Accept trailing zero bytes (over-allocated record storage).

        Raises:
            DecodeError: On insufficient bytes, invalid content, or disallowed trailing bytes.
        """
        raw = bytes(data)
        stream = io.BytesIO(raw)
        try:
            parsed = self._struct.parse_stream(stream)
        except _DECODE_ERRORS as e:
            raise DecodeError(f"{self.name}: {e}") from e
        consumed = stream.tell()
        trailing = raw[consumed:]
        if trailing and not (allow_padding and not any(trailing)):
            raise DecodeError(
                f"{self.name}: {len(trailing)} trailing bytes after {consumed} decoded bytes"
            )
        return {n: _plain(parsed[n]) for n in self.field_names}

    def __repr__(self) -> str:
        parts = ", ".join(f"{n}:{t.name}" for n, t in self.fields)
        return f"RecordLayout({self.name}: {parts})"


# ============================================================================
# INSTRUCTION SETS
# ============================================================================

@dataclass(frozen=True, slots=True)
class InstructionVariant:
    """One entry of an instruction set: discriminator, name and argument schema."""
    discriminator: int
    name: str
    args: RecordLayout

    def __post_init__(self):
        if not 0 <= self.discriminator <= 255:
            raise ValueError(f"discriminator must fit in a u8, got {self.discriminator}")


@dataclass(frozen=True, slots=True)
class DecodedInstruction:
    """An instruction after its discriminator and arguments have been decoded."""
    variant: InstructionVariant
    args: Payload

    @property
    def name(self) -> str:
        return self.variant.name

    @property
    def discriminator(self) -> int:
        return self.variant.discriminator


class InstructionSet:
    """
    Closed, versioned discriminator -> schema table for one program.

    Adding a variant means adding a new discriminator; existing discriminators are
    never reused for a different schema.

    Example:
        MEMO_V1 = InstructionSet("memo", 1, [
            InstructionVariant(0, "Initialize", RecordLayout("Initialize", ("content", STRING))),
            InstructionVariant(1, "Update", RecordLayout("Update", ("content", STRING))),
            InstructionVariant(2, "Delete", RecordLayout("Delete")),
        ])
        data = MEMO_V1.encode("Update", content="hi")   # b"\\x01\\x02\\x00\\x00\\x00hi"
        MEMO_V1.decode(data).name == "Update"
    """

    def __init__(self, name: str, version: int, variants: Iterable[InstructionVariant]):
        by_disc: Dict[int, InstructionVariant] = {}
        by_name: Dict[str, InstructionVariant] = {}
        for variant in variants:
            if variant.discriminator in by_disc:
                raise ValueError(f"{name} v{version}: duplicate discriminator {variant.discriminator}")
            if variant.name in by_name:
                raise ValueError(f"{name} v{version}: duplicate variant name {variant.name!r}")
            by_disc[variant.discriminator] = variant
            by_name[variant.name] = variant
        self.name = name
        self.version = version
        self._by_discriminator = by_disc
        self._by_name = by_name

    @property
    def names(self) -> List[str]:
        return [self._by_discriminator[d].name for d in sorted(self._by_discriminator)]

    def variant(self, name: str) -> InstructionVariant:
        if name not in self._by_name:
            raise KeyError(f"{self.name} v{self.version} has no variant {name!r}")
        return self._by_name[name]

    def encode(self, name: str, /, **args: Any) -> bytes:
        """Encode [discriminator][args] for the named variant."""
        variant = self.variant(name)
        return bytes([variant.discriminator]) + variant.args.encode(args)

    def decode(self, data: bytes) -> DecodedInstruction:
        """
        Decode instruction data.

        Raises:
            InvalidInstruction: If data is empty or the arguments do not match the schema.
            UnknownDiscriminator: If the leading byte is not in this instruction set.
        """
        if not data:
            raise InvalidInstruction(f"{self.name}: empty instruction data")
        discriminator = data[0]
        variant = self._by_discriminator.get(discriminator)
        if variant is None:
            raise UnknownDiscriminator(
                f"{self.name} v{self.version}: unknown discriminator {discriminator}"
            )
        try:
            args = variant.args.decode(data[1:])
        except DecodeError as e:
            raise InvalidInstruction(f"{self.name}.{variant.name}: {e}") from e
        return DecodedInstruction(variant=variant, args=args)

    def __contains__(self, discriminator: int) -> bool:
        return discriminator in self._by_discriminator

    def __repr__(self) -> str:
        return f"InstructionSet({self.name} v{self.version}: {self.names})"
