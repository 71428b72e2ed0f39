"""
Type Decoder: Borsh bytes back to structured values.

Mirrors the encoder through the shared layout in ``layout.py``. Values
come back as plain Python data: dicts for structs, lists for vectors,
arrays and tuples, base58 strings for addresses, ``bytes`` for byte
strings, ``None`` for an empty option, and either the variant name or
``{variant: payload}`` for enums.
"""

import logging
from typing import Any, Callable, Dict

import base58

from ..errors import DecodeError, MalformedData, TruncatedData, UnexpectedTrailingData
from ..schema.idl_parser import DISCRIMINATOR_SIZE
from ..schema.models import (
    ArrayType,
    BoolType,
    BytesType,
    EnumType,
    FixedBytesType,
    IntType,
    OptionType,
    Schema,
    StringType,
    StructType,
    TupleType,
    TypeDescriptor,
    VecType,
)
from .layout import (
    BOOL_FALSE,
    BOOL_TRUE,
    DISCRIMINANT,
    LENGTH_PREFIX,
    OPTION_NONE,
    OPTION_SOME,
    OPTION_TAG,
    ByteCursor,
    min_size,
)
from .values import DecodedValue

logger = logging.getLogger(__name__)

MAX_EMPTY_ELEMENTS = 1024


def _decode_bool(descriptor: BoolType, cursor: ByteCursor) -> bool:
    offset = cursor.offset
    byte = cursor.take(1)[0]
    if byte == BOOL_TRUE:
        return True
    if byte == BOOL_FALSE:
        return False
    raise MalformedData(f"Invalid bool byte {byte} at offset {offset}")


def _decode_int(descriptor: IntType, cursor: ByteCursor) -> int:
    return cursor.read_int(descriptor)


def _decode_fixed_bytes(descriptor: FixedBytesType, cursor: ByteCursor) -> str:
    return base58.b58encode(cursor.take(descriptor.length)).decode()


def _decode_string(descriptor: StringType, cursor: ByteCursor) -> str:
    length = cursor.read_int(LENGTH_PREFIX)
    offset = cursor.offset
    raw = cursor.take(length)
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedData(f"Invalid UTF-8 string at offset {offset}: {e}") from e


def _decode_bytes(descriptor: BytesType, cursor: ByteCursor) -> bytes:
    return cursor.take(cursor.read_int(LENGTH_PREFIX))


def _decode_items(element: TypeDescriptor, count: int, cursor: ByteCursor) -> list:
    needed = min_size(element) * count
    if needed > cursor.remaining:
        raise TruncatedData(
            f"{count} x {element.label} needs at least {needed} bytes, only {cursor.remaining} left"
        )
    return [decode(element, cursor) for _ in range(count)]


def _decode_vec(descriptor: VecType, cursor: ByteCursor) -> list:
    offset = cursor.offset
    count = cursor.read_int(LENGTH_PREFIX)
    # Zero-sized elements consume nothing, so the byte check cannot bound the count
    if min_size(descriptor.element) == 0 and count > MAX_EMPTY_ELEMENTS:
        raise MalformedData(
            f"Vector count {count} at offset {offset} is too large for zero-sized "
            f"{descriptor.element.label} elements (max {MAX_EMPTY_ELEMENTS})"
        )
    return _decode_items(descriptor.element, count, cursor)


def _decode_array(descriptor: ArrayType, cursor: ByteCursor) -> list:
    return _decode_items(descriptor.element, descriptor.length, cursor)


def _decode_option(descriptor: OptionType, cursor: ByteCursor) -> Any:
    offset = cursor.offset
    tag = cursor.read_int(OPTION_TAG)
    if tag == OPTION_NONE:
        return None
    if tag == OPTION_SOME:
        return decode(descriptor.inner, cursor)
    raise MalformedData(f"Invalid option tag {tag} at offset {offset}")


def _decode_tuple(descriptor: TupleType, cursor: ByteCursor) -> list:
    return [decode(element, cursor) for element in descriptor.elements]


def _decode_struct(descriptor: StructType, cursor: ByteCursor) -> Dict[str, Any]:
    return {field.name: decode(field.type, cursor) for field in descriptor.fields}


def _decode_enum(descriptor: EnumType, cursor: ByteCursor) -> Any:
    offset = cursor.offset
    index = cursor.read_int(DISCRIMINANT)
    if index >= len(descriptor.variants):
        raise MalformedData(
            f"Discriminant {index} at offset {offset} is out of range for {descriptor.name} "
            f"({len(descriptor.variants)} variants)"
        )
    variant = descriptor.variants[index]
    if variant.payload is None:
        return variant.name
    return {variant.name: decode(variant.payload, cursor)}


_DECODERS: Dict[type, Callable[[Any, ByteCursor], Any]] = {
    BoolType: _decode_bool,
    IntType: _decode_int,
    FixedBytesType: _decode_fixed_bytes,
    StringType: _decode_string,
    BytesType: _decode_bytes,
    VecType: _decode_vec,
    ArrayType: _decode_array,
    OptionType: _decode_option,
    TupleType: _decode_tuple,
    StructType: _decode_struct,
    EnumType: _decode_enum,
}


def decode(descriptor: TypeDescriptor, cursor: ByteCursor) -> Any:
    """Decode one value at the cursor, advancing it past the value."""
    decoder = _DECODERS.get(type(descriptor))
    if decoder is None:
        raise DecodeError(f"Cannot decode type {descriptor!r}")
    return decoder(descriptor, cursor)


def decode_value(descriptor: TypeDescriptor, data: bytes, strict: bool = False) -> DecodedValue:
    """
    Decode a complete buffer as one top-level value.

    Leftover bytes are a warning (some programs append metadata) unless
    ``strict`` is set, in which case they raise UnexpectedTrailingData.
    """
    cursor = ByteCursor(data)
    value = decode(descriptor, cursor)
    trailing = cursor.remaining
    if trailing:
        message = f"{trailing} unexpected trailing bytes after decoding {descriptor.label}"
        if strict:
            raise UnexpectedTrailingData(message)
        logger.warning(message)
    return DecodedValue(descriptor=descriptor, value=value, trailing_bytes=trailing)


def decode_account(
    schema: Schema,
    type_name: str,
    data: bytes,
    skip_discriminator: bool = True,
    strict: bool = False,
) -> DecodedValue:
    """
    Decode an account's stored bytes as a named IDL type.

    Anchor accounts start with an 8-byte discriminator; when the type is a
    declared account, the prefix is checked before it is skipped.
    """
    descriptor = schema.lookup_type(type_name)
    if skip_discriminator:
        if len(data) < DISCRIMINATOR_SIZE:
            raise TruncatedData(
                f"Account data too short to contain a discriminator: {len(data)} bytes"
            )
        expected = schema.account_discriminators.get(type_name)
        if expected is not None and data[:len(expected)] != expected:
            raise MalformedData(
                f"Account discriminator {data[:len(expected)].hex()} does not match "
                f"{type_name} ({expected.hex()})"
            )
        data = data[len(expected) if expected is not None else DISCRIMINATOR_SIZE:]
    return decode_value(descriptor, data, strict=strict)
