"""
Codec module: Borsh encoding and decoding driven by schema type descriptors.
"""

from .layout import ByteCursor, fixed_size, min_size
from .values import DecodedValue, EncodedValue, to_json_value, to_text
from .encoder import (
    encode,
    encode_arguments,
    encode_instruction,
    encode_seed,
    encode_value,
)
from .decoder import decode, decode_account, decode_value

__all__ = [
    "ByteCursor",
    "fixed_size",
    "min_size",
    "DecodedValue",
    "EncodedValue",
    "to_json_value",
    "to_text",
    "encode",
    "encode_arguments",
    "encode_instruction",
    "encode_seed",
    "encode_value",
    "decode",
    "decode_account",
    "decode_value",
]
