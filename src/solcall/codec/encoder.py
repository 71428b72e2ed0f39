"""
Type Encoder: human-readable argument text to Borsh bytes.

Top-level values arrive as CLI text. Nested values arrive either as text
(e.g. the items of ``1,2,3``) or as values already parsed from JSON (the
fields of a struct object), so every encoder accepts both.

The none-literals of an option (``null``, ``none``, empty text) only apply
to text. Parsed values (JSON fields, decoded data) use ``None`` alone, so
``Some("none")`` survives a decode/encode round trip.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Sequence, Tuple

import base58

from ..errors import (
    ArgumentCountMismatch,
    EncodeError,
    InvalidBoolLiteral,
    LengthMismatch,
    MalformedInput,
    OutOfRange,
    UnknownVariant,
)
from ..schema.models import (
    ArrayType,
    BoolType,
    BytesType,
    EnumType,
    FixedBytesType,
    InstructionSpec,
    IntType,
    OptionType,
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
    pack_int,
)
from .values import EncodedValue

logger = logging.getLogger(__name__)

_INT_PATTERN = re.compile(r"^(-)?(0[xX][0-9a-fA-F]+|[0-9]+)$")

NONE_LITERALS = {"", "null", "none"}

_NO_PAYLOAD = object()


def _parse_int(value: Any, descriptor: IntType) -> int:
    if isinstance(value, bool):
        raise MalformedInput(f"Expected an integer for {descriptor.label}, got a boolean")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str):
        match = _INT_PATTERN.match(value.strip())
        if not match:
            raise MalformedInput(
                f"The provided argument for {descriptor.label} is not a valid integer: {value!r}"
            )
        sign, digits = match.groups()
        number = int(digits, 16) if digits[:2].lower() == "0x" else int(digits, 10)
        if sign:
            number = -number
    else:
        raise MalformedInput(f"Expected an integer for {descriptor.label}, got {value!r}")

    if not descriptor.min_value <= number <= descriptor.max_value:
        raise OutOfRange(
            f"{number} does not fit in {descriptor.label} "
            f"(range {descriptor.min_value}..{descriptor.max_value})"
        )
    return number


def _split_list(value: Any, descriptor: TypeDescriptor) -> Tuple[List[Any], bool]:
    """
    Accept a JSON list, ``[a,b,c]`` or ``a,b,c``.

    Also reports whether the items are parsed JSON values or raw text.
    """
    if isinstance(value, list):
        return value, True
    if not isinstance(value, str):
        raise MalformedInput(f"Expected a list for {descriptor.label}, got {value!r}")
    text = value.strip()
    if not text:
        return [], False
    if text.startswith("[") and text.endswith("]"):
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            text = text[1:-1].strip()
            if not text:
                return [], False
        else:
            if isinstance(parsed, list):
                return parsed, True
    return [item.strip() for item in text.split(",")], False


def _load_object(value: Any, descriptor: TypeDescriptor) -> Dict[str, Any]:
    """Accept a dict, JSON object text, or a path to a JSON file."""
    if isinstance(value, dict):
        return value
    if not isinstance(value, str):
        raise MalformedInput(f"Expected a JSON object for {descriptor.label}, got {value!r}")
    text = value.strip()
    if not text.startswith("{"):
        try:
            path = Path(text).expanduser()
            if path.is_file():
                text = path.read_text()
        except OSError:
            pass
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedInput(
            f"The provided argument for {descriptor.label} is not a valid JSON object: {e}"
        ) from e
    if not isinstance(parsed, dict):
        raise MalformedInput(f"Expected a JSON object for {descriptor.label}")
    return parsed


def _encode_bool(descriptor: BoolType, value: Any, parsed: bool = False) -> bytes:
    if isinstance(value, bool):
        flag = value
    elif isinstance(value, str) and value.strip().lower() in ("true", "false"):
        flag = value.strip().lower() == "true"
    else:
        raise InvalidBoolLiteral(f"Expected true or false, got {value!r}")
    return bytes([BOOL_TRUE if flag else BOOL_FALSE])


def _encode_int(descriptor: IntType, value: Any, parsed: bool = False) -> bytes:
    return pack_int(_parse_int(value, descriptor), descriptor)


def _encode_fixed_bytes(descriptor: FixedBytesType, value: Any, parsed: bool = False) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        try:
            raw = base58.b58decode(value.strip())
        except ValueError as e:
            raise MalformedInput(f"Not a valid base58 string: {value!r}") from e
    else:
        raise MalformedInput(f"Expected a base58 string for {descriptor.label}, got {value!r}")
    if len(raw) != descriptor.length:
        raise LengthMismatch(
            f"{value!r} decodes to {len(raw)} bytes, {descriptor.label} needs {descriptor.length}"
        )
    return raw


def _with_length(raw: bytes) -> bytes:
    return pack_int(len(raw), LENGTH_PREFIX) + raw


def _encode_string(descriptor: StringType, value: Any, parsed: bool = False) -> bytes:
    if not isinstance(value, str):
        raise MalformedInput(f"Expected a string, got {value!r}")
    return _with_length(value.encode("utf-8"))


def _parse_bytes(value: Any, descriptor: TypeDescriptor) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, list):
        try:
            return bytes(value)
        except (TypeError, ValueError) as e:
            raise MalformedInput(f"Not a list of bytes: {value!r}") from e
    if isinstance(value, str):
        text = value.strip()
        if text[:2].lower() == "0x":
            text = text[2:]
        try:
            return bytes.fromhex(text)
        except ValueError as e:
            raise MalformedInput(
                f"The provided argument for {descriptor.label} is not a valid hex string: {value!r}"
            ) from e
    raise MalformedInput(f"Expected a hex string for {descriptor.label}, got {value!r}")


def _encode_bytes(descriptor: BytesType, value: Any, parsed: bool = False) -> bytes:
    return _with_length(_parse_bytes(value, descriptor))


def _encode_vec(descriptor: VecType, value: Any, parsed: bool = False) -> bytes:
    items, parsed = _split_list(value, descriptor)
    body = b"".join(_encode_item(descriptor.element, item, i, parsed) for i, item in enumerate(items))
    return pack_int(len(items), LENGTH_PREFIX) + body


def _encode_array(descriptor: ArrayType, value: Any, parsed: bool = False) -> bytes:
    items, parsed = _split_list(value, descriptor)
    if len(items) != descriptor.length:
        raise LengthMismatch(
            f"{descriptor.label} needs {descriptor.length} elements, got {len(items)}"
        )
    return b"".join(_encode_item(descriptor.element, item, i, parsed) for i, item in enumerate(items))


def _encode_item(descriptor: TypeDescriptor, item: Any, index: int, parsed: bool) -> bytes:
    try:
        return encode(descriptor, item, parsed)
    except EncodeError as e:
        e.message = f"element {index}: {e.message}"
        raise


def _encode_option(descriptor: OptionType, value: Any, parsed: bool = False) -> bytes:
    if value is None or (
        not parsed and isinstance(value, str) and value.strip().lower() in NONE_LITERALS
    ):
        return pack_int(OPTION_NONE, OPTION_TAG)
    return pack_int(OPTION_SOME, OPTION_TAG) + encode(descriptor.inner, value, parsed)


def _encode_tuple(descriptor: TupleType, value: Any, parsed: bool = False) -> bytes:
    items, parsed = _split_list(value, descriptor)
    if len(items) != len(descriptor.elements):
        raise LengthMismatch(
            f"{descriptor.label} needs {len(descriptor.elements)} values, got {len(items)}"
        )
    return b"".join(
        _encode_item(element, item, i, parsed)
        for i, (element, item) in enumerate(zip(descriptor.elements, items))
    )


def _encode_struct(descriptor: StructType, value: Any, parsed: bool = False) -> bytes:
    obj = _load_object(value, descriptor)
    unknown = set(obj) - set(descriptor.field_names())
    if unknown:
        logger.warning("Ignoring unknown fields for %s: %s", descriptor.name, ", ".join(sorted(unknown)))

    # Declared order, never input order
    out = b""
    for field in descriptor.fields:
        if field.name not in obj:
            raise MalformedInput(f"Field {field.name} not found in {descriptor.name}")
        try:
            out += encode(field.type, obj[field.name], parsed=True)
        except EncodeError as e:
            e.message = f"field {field.name}: {e.message}"
            raise
    return out


def _encode_enum(descriptor: EnumType, value: Any, parsed: bool = False) -> bytes:
    payload: Any = _NO_PAYLOAD
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("{"):
            value = _load_object(text, descriptor)
        else:
            name = text.replace('"', "")
    if isinstance(value, dict):
        if len(value) != 1:
            raise MalformedInput(f"Expected a single-variant object for {descriptor.name}, got {value!r}")
        (name, payload), = value.items()
    elif not isinstance(value, str):
        raise MalformedInput(f"Expected a variant of {descriptor.name}, got {value!r}")

    index = descriptor.variant_index(name)
    if index is None:
        raise UnknownVariant(
            f"Variant {name} not found. Available variants of {descriptor.name}: "
            f"{descriptor.variant_names()}"
        )
    variant = descriptor.variants[index]
    tag = pack_int(index, DISCRIMINANT)
    if variant.payload is None:
        if payload is not _NO_PAYLOAD and payload is not None:
            raise MalformedInput(f"Variant {name} of {descriptor.name} takes no value")
        return tag
    # JSON null is a value only for an option payload
    if payload is _NO_PAYLOAD or (payload is None and not isinstance(variant.payload, OptionType)):
        raise MalformedInput(f"Variant {name} of {descriptor.name} needs a {variant.payload.label} value")
    try:
        return tag + encode(variant.payload, payload, parsed=True)
    except EncodeError as e:
        e.message = f"variant {name}: {e.message}"
        raise


_ENCODERS: Dict[type, Callable[[Any, Any, bool], bytes]] = {
    BoolType: _encode_bool,
    IntType: _encode_int,
    FixedBytesType: _encode_fixed_bytes,
    StringType: _encode_string,
    BytesType: _encode_bytes,
    VecType: _encode_vec,
    ArrayType: _encode_array,
    OptionType: _encode_option,
    TupleType: _encode_tuple,
    StructType: _encode_struct,
    EnumType: _encode_enum,
}


def encode(descriptor: TypeDescriptor, value: Any, parsed: bool = False) -> bytes:
    """
    Encode one value as the given type.

    ``parsed`` marks values that came from JSON or the decoder rather than
    from command-line text.
    """
    encoder = _ENCODERS.get(type(descriptor))
    if encoder is None:
        raise MalformedInput(f"Cannot encode type {descriptor!r}")
    return encoder(descriptor, value, parsed)


def encode_value(descriptor: TypeDescriptor, value: Any, parsed: bool = False) -> EncodedValue:
    return EncodedValue(data=encode(descriptor, value, parsed), descriptor=descriptor)


def encode_seed(descriptor: TypeDescriptor, value: Any) -> bytes:
    """
    Bytes an argument contributes to a PDA seed.

    Strings and byte strings contribute their raw content without the
    length prefix; everything else uses its Borsh encoding.
    """
    if isinstance(descriptor, StringType):
        if not isinstance(value, str):
            raise MalformedInput(f"Expected a string, got {value!r}")
        return value.encode("utf-8")
    if isinstance(descriptor, BytesType):
        return _parse_bytes(value, descriptor)
    return encode(descriptor, value)


def encode_arguments(instruction: InstructionSpec, raw_args: Sequence[Any]) -> bytes:
    """Encode the argument list only (no discriminator)."""
    if len(raw_args) != len(instruction.arguments):
        names = ", ".join(a.name for a in instruction.arguments) or "none"
        raise ArgumentCountMismatch(
            f"Instruction {instruction.name} expects {len(instruction.arguments)} "
            f"arguments ({names}), got {len(raw_args)}"
        )
    out = b""
    for i, (arg, raw) in enumerate(zip(instruction.arguments, raw_args)):
        try:
            out += encode(arg.type, raw)
        except EncodeError as e:
            raise e.with_context(i, arg.name, arg.type.label)
    return out


def encode_instruction(instruction: InstructionSpec, raw_args: Sequence[Any]) -> bytes:
    """Instruction data: discriminator followed by the encoded arguments."""
    return instruction.discriminator + encode_arguments(instruction, raw_args)
