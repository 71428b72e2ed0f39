"""
Schema module: the in-memory model of a program's IDL.
"""

from .models import (
    AccountRole,
    ArgumentSpec,
    ArrayType,
    BoolType,
    BytesType,
    EnumType,
    EnumVariant,
    FixedBytesType,
    InstructionSpec,
    IntType,
    OptionType,
    PdaDerivation,
    PUBKEY,
    Schema,
    Seed,
    SeedKind,
    StringType,
    StructField,
    StructType,
    TupleType,
    TypeDescriptor,
    VecType,
)
from .idl_parser import IDLParser, load_schema, load_schema_file, sighash

__all__ = [
    "AccountRole",
    "ArgumentSpec",
    "ArrayType",
    "BoolType",
    "BytesType",
    "EnumType",
    "EnumVariant",
    "FixedBytesType",
    "InstructionSpec",
    "IntType",
    "OptionType",
    "PdaDerivation",
    "PUBKEY",
    "Schema",
    "Seed",
    "SeedKind",
    "StringType",
    "StructField",
    "StructType",
    "TupleType",
    "TypeDescriptor",
    "VecType",
    "IDLParser",
    "load_schema",
    "load_schema_file",
    "sighash",
]
