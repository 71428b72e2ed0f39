"""
Encoded and decoded value containers, plus JSON/text rendering.
"""

import json
from dataclasses import dataclass
from typing import Any

from ..schema.models import (
    ArrayType,
    BytesType,
    EnumType,
    IntType,
    OptionType,
    StructType,
    TupleType,
    TypeDescriptor,
    VecType,
)

# Integers wider than this are rendered as decimal strings in JSON
JSON_SAFE_INT_BITS = 64


@dataclass
class EncodedValue:
    """Bytes plus the descriptor they were encoded from. Debugging only."""
    data: bytes
    descriptor: TypeDescriptor

    def hex(self) -> str:
        return self.data.hex()

    def __len__(self) -> int:
        return len(self.data)


def to_json_value(descriptor: TypeDescriptor, value: Any) -> Any:
    """Make a decoded value JSON-safe, guided by its descriptor."""
    if value is None:
        return None
    if isinstance(descriptor, IntType):
        return str(value) if descriptor.bits > JSON_SAFE_INT_BITS else value
    if isinstance(descriptor, BytesType):
        return value.hex()
    if isinstance(descriptor, (VecType, ArrayType)):
        return [to_json_value(descriptor.element, item) for item in value]
    if isinstance(descriptor, TupleType):
        return [to_json_value(e, item) for e, item in zip(descriptor.elements, value)]
    if isinstance(descriptor, OptionType):
        return to_json_value(descriptor.inner, value)
    if isinstance(descriptor, StructType):
        return {f.name: to_json_value(f.type, value[f.name]) for f in descriptor.fields}
    if isinstance(descriptor, EnumType):
        if isinstance(value, str):
            return value
        (name, payload), = value.items()
        variant = descriptor.variants[descriptor.variant_index(name)]
        return {name: to_json_value(variant.payload, payload)}
    return value


def to_text(descriptor: TypeDescriptor, value: Any) -> str:
    """Plain-text rendering: scalars bare, compound values as compact JSON."""
    rendered = to_json_value(descriptor, value)
    if isinstance(rendered, bool):
        return "true" if rendered else "false"
    if rendered is None:
        return "None"
    if isinstance(rendered, (int, str)):
        return str(rendered)
    return json.dumps(rendered)


@dataclass
class DecodedValue:
    """A decoded value tree together with the descriptor it was read with."""
    descriptor: TypeDescriptor
    value: Any
    trailing_bytes: int = 0

    def to_json(self) -> Any:
        return to_json_value(self.descriptor, self.value)

    def __str__(self) -> str:
        return to_text(self.descriptor, self.value)
