"""
Cleartext Payload Codec
=======================
Fixed-layout encoding of the oracle's decrypted results.

Each field occupies one 32-byte big-endian word, in the order the
layout declares. The proof search layout is::

    word 0: result_value  (uint32, proof step count)
    word 1: result_flag   (bool, 0 or 1: proof found)

The payload is decoded exactly once, with exactly this layout.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Sequence, Tuple

from .errors import MalformedPayload

WORD_SIZE = 32


class FieldType(str, Enum):
    """Supported cleartext field types"""
    UINT32 = "uint32"
    UINT64 = "uint64"
    BOOL = "bool"
    BYTES32 = "bytes32"


_UINT_BITS = {FieldType.UINT32: 32, FieldType.UINT64: 64}


@dataclass(frozen=True)
class FieldSpec:
    name: str
    field_type: FieldType


class CleartextCodec:
    """Encodes and decodes payloads for one field layout"""

    def __init__(self, fields: Sequence[Tuple[str, FieldType]]):
        if not fields:
            raise ValueError("Layout must declare at least one field")
        self.fields: List[FieldSpec] = [FieldSpec(name, ftype) for name, ftype in fields]

    @property
    def payload_size(self) -> int:
        return WORD_SIZE * len(self.fields)

    def encode(self, values: Dict[str, Any]) -> bytes:
        """
        Encode values into a payload.

        Args:
            values: Mapping of field name to cleartext value

        Returns:
            Concatenated 32-byte words
        """
        words = []
        for spec in self.fields:
            if spec.name not in values:
                raise ValueError(f"Missing field '{spec.name}'")
            words.append(self._encode_word(spec, values[spec.name]))
        return b"".join(words)

    def decode(self, payload: bytes) -> Dict[str, Any]:
        """
        Decode a payload into typed values.

        Raises:
            MalformedPayload: Wrong length or out-of-range field
        """
        if not isinstance(payload, (bytes, bytearray)):
            raise MalformedPayload("Cleartext payload must be bytes")
        if len(payload) != self.payload_size:
            raise MalformedPayload(
                f"Expected {self.payload_size} bytes, got {len(payload)}"
            )

        decoded = {}
        for index, spec in enumerate(self.fields):
            word = bytes(payload[index * WORD_SIZE:(index + 1) * WORD_SIZE])
            decoded[spec.name] = self._decode_word(spec, word)
        return decoded

    def _encode_word(self, spec: FieldSpec, value: Any) -> bytes:
        if spec.field_type == FieldType.BYTES32:
            if not isinstance(value, (bytes, bytearray)) or len(value) != WORD_SIZE:
                raise ValueError(f"Field '{spec.name}' must be 32 bytes")
            return bytes(value)

        if spec.field_type == FieldType.BOOL:
            return int(bool(value)).to_bytes(WORD_SIZE, 'big')

        bits = _UINT_BITS[spec.field_type]
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < 2 ** bits:
            raise ValueError(f"Field '{spec.name}' must be a {spec.field_type.value}")
        return value.to_bytes(WORD_SIZE, 'big')

    def _decode_word(self, spec: FieldSpec, word: bytes) -> Any:
        if spec.field_type == FieldType.BYTES32:
            return word

        number = int.from_bytes(word, 'big')

        if spec.field_type == FieldType.BOOL:
            if number not in (0, 1):
                raise MalformedPayload(f"Field '{spec.name}' is not a boolean word")
            return number == 1

        if number >= 2 ** _UINT_BITS[spec.field_type]:
            raise MalformedPayload(
                f"Field '{spec.name}' overflows {spec.field_type.value}"
            )
        return number


PROOF_RESULT_LAYOUT = (
    ("result_value", FieldType.UINT32),
    ("result_flag", FieldType.BOOL),
)


def proof_result_codec() -> CleartextCodec:
    """Codec for the proof search result layout"""
    return CleartextCodec(PROOF_RESULT_LAYOUT)


def encode_proof_result(result_value: int, result_flag: bool) -> bytes:
    return proof_result_codec().encode({
        'result_value': result_value,
        'result_flag': result_flag
    })
