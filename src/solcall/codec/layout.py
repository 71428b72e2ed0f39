"""
Borsh layout shared by the encoder and the decoder.

Both directions read their widths, prefixes and tags from this module so
the two can never disagree about where a field ends.
"""

from typing import Optional

from ..errors import TruncatedData
from ..schema.models import (
    ArrayType,
    BoolType,
    BytesType,
    EnumType,
    FixedBytesType,
    IntType,
    OptionType,
    StringType,
    StructType,
    TupleType,
    TypeDescriptor,
    VecType,
)

BYTE_ORDER = "little"

# Length of strings and bytes, element count of vectors
LENGTH_PREFIX = IntType(32)
# Enum variant index
DISCRIMINANT = IntType(8)
# Option presence flag
OPTION_TAG = IntType(8)

BOOL_FALSE = 0
BOOL_TRUE = 1
OPTION_NONE = 0
OPTION_SOME = 1


def int_size(descriptor: IntType) -> int:
    """Byte width of an integer; a u256 always takes 32 bytes."""
    return descriptor.bits // 8


def pack_int(value: int, descriptor: IntType) -> bytes:
    """Little-endian two's complement at the exact width. Caller checks range."""
    return value.to_bytes(int_size(descriptor), BYTE_ORDER, signed=descriptor.signed)


def unpack_int(data: bytes, descriptor: IntType) -> int:
    return int.from_bytes(data, BYTE_ORDER, signed=descriptor.signed)


def fixed_size(descriptor: TypeDescriptor) -> Optional[int]:
    """Encoded size when it does not depend on the value, else None."""
    if isinstance(descriptor, BoolType):
        return 1
    if isinstance(descriptor, IntType):
        return int_size(descriptor)
    if isinstance(descriptor, FixedBytesType):
        return descriptor.length
    if isinstance(descriptor, ArrayType):
        element = fixed_size(descriptor.element)
        return None if element is None else element * descriptor.length
    if isinstance(descriptor, (StructType, TupleType)):
        members = (
            [f.type for f in descriptor.fields]
            if isinstance(descriptor, StructType)
            else list(descriptor.elements)
        )
        total = 0
        for member in members:
            size = fixed_size(member)
            if size is None:
                return None
            total += size
        return total
    if isinstance(descriptor, EnumType):
        if all(v.payload is None for v in descriptor.variants):
            return int_size(DISCRIMINANT)
        return None
    return None


def min_size(descriptor: TypeDescriptor) -> int:
    """Smallest number of bytes any value of this type encodes to."""
    size = fixed_size(descriptor)
    if size is not None:
        return size
    if isinstance(descriptor, (StringType, BytesType, VecType)):
        return int_size(LENGTH_PREFIX)
    if isinstance(descriptor, OptionType):
        return int_size(OPTION_TAG)
    if isinstance(descriptor, EnumType):
        return int_size(DISCRIMINANT)
    if isinstance(descriptor, ArrayType):
        return min_size(descriptor.element) * descriptor.length
    if isinstance(descriptor, StructType):
        return sum(min_size(f.type) for f in descriptor.fields)
    if isinstance(descriptor, TupleType):
        return sum(min_size(e) for e in descriptor.elements)
    return 0


class ByteCursor:
    """
    Forward-only reader over a byte buffer.

    The offset never moves backwards; reading past the end raises
    TruncatedData without consuming anything.
    """

    def __init__(self, data: bytes, offset: int = 0):
        self.data = bytes(data)
        self.offset = offset

    @property
    def remaining(self) -> int:
        return len(self.data) - self.offset

    def at_end(self) -> bool:
        return self.remaining == 0

    def take(self, size: int) -> bytes:
        if size > self.remaining:
            raise TruncatedData(
                f"Needed {size} bytes at offset {self.offset}, only {self.remaining} left"
            )
        chunk = self.data[self.offset:self.offset + size]
        self.offset += size
        return chunk

    def read_int(self, descriptor: IntType) -> int:
        return unpack_int(self.take(int_size(descriptor)), descriptor)
