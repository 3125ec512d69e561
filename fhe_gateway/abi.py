"""
ABI-style codec for clear values returned by a public decryption.
Each value occupies one 32-byte big-endian word, matching how the FHE
relayer hands `abiEncodedClearValues` back to the ledger.
"""
from typing import List, Sequence

WORD_SIZE_BYTES = 32
UINT32_MAX = 2**32 - 1  # Stream keys are encrypted as euint32
HANDLE_SIZE_BYTES = 32

def encode_clear_values(values: Sequence[int]) -> bytes:
    """
    Encodes a sequence of unsigned 32-bit integers as consecutive 32-byte words.

    Raises:
        TypeError: If any value is not an int.
        ValueError: If any value is outside the uint32 range.
    """
    encoded = bytearray()
    for value in values:
        if not isinstance(value, int) or isinstance(value, bool):
            raise TypeError("Clear values must be integers.")
        if not (0 <= value <= UINT32_MAX):
            raise ValueError(f"Clear value {value} is outside the uint32 range.")
        encoded += value.to_bytes(WORD_SIZE_BYTES, 'big')
    return bytes(encoded)

def decode_clear_values(data: bytes) -> List[int]:
    """Decodes every 32-byte word of an encoded payload."""
    if not isinstance(data, bytes):
        raise TypeError("Encoded clear values must be bytes.")
    if len(data) == 0 or len(data) % WORD_SIZE_BYTES != 0:
        raise ValueError(f"Encoded clear values must be a non-empty multiple of {WORD_SIZE_BYTES} bytes.")
    return [int.from_bytes(data[i:i + WORD_SIZE_BYTES], 'big')
            for i in range(0, len(data), WORD_SIZE_BYTES)]

def decode_clear_value(data: bytes, index: int = 0) -> int:
    """
    Decodes the clear value at position `index`.

    Raises:
        ValueError: If the payload is malformed, the index is out of range,
                    or the decoded word does not fit in a uint32.
    """
    values = decode_clear_values(data)
    if not (0 <= index < len(values)):
        raise ValueError(f"Clear value index {index} out of range (payload holds {len(values)}).")
    value = values[index]
    if value > UINT32_MAX:
        raise ValueError(f"Decoded clear value {value} does not fit in a uint32.")
    return value

def to_hex(data: bytes) -> str:
    return "0x" + data.hex()

def from_hex(text: str) -> bytes:
    """Parses a hex string, with or without a leading 0x."""
    if not isinstance(text, str):
        raise TypeError("Hex input must be a string.")
    if text[:2].lower() == "0x":
        text = text[2:]
    try:
        return bytes.fromhex(text)
    except ValueError:
        raise ValueError(f"Invalid hex string: '{text[:16]}'")
