"""
IDL Parser for Anchor and Solang programs.

Parses IDL JSON into a fully resolved Schema: every ``defined`` reference
is replaced by its descriptor, so the codec never looks names up again.
"""

import hashlib
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Any, Union

import base58

from ..errors import SchemaError
from .models import (
    ArgumentSpec,
    AccountRole,
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

logger = logging.getLogger(__name__)

DISCRIMINATOR_SIZE = 8
MAX_ENUM_VARIANTS = 256

INT_WIDTHS = (8, 16, 32, 64, 128, 256)

PRIMITIVE_TYPES: Dict[str, TypeDescriptor] = {
    "bool": BoolType(),
    "string": StringType(),
    "bytes": BytesType(),
    "publicKey": PUBKEY,
    "pubkey": PUBKEY,
}
for _bits in INT_WIDTHS:
    PRIMITIVE_TYPES[f"u{_bits}"] = IntType(_bits, signed=False)
    PRIMITIVE_TYPES[f"i{_bits}"] = IntType(_bits, signed=True)

UNSUPPORTED_TYPES = {"f32", "f64"}


def sighash(namespace: str, name: str) -> bytes:
    """Anchor discriminator: first 8 bytes of sha256("<namespace>:<name>")."""
    return hashlib.sha256(f"{namespace}:{name}".encode()).digest()[:DISCRIMINATOR_SIZE]


class IDLParser:
    """
    Parser for Anchor/Solang IDL files.

    Accepts both the legacy spelling (``isMut``, ``isSigner``,
    ``publicKey``, ``{"defined": "Name"}``) and the 0.30 spelling
    (``writable``, ``signer``, ``pubkey``, ``{"defined": {"name": ...}}``).
    Cyclic type definitions are rejected.
    """

    def __init__(self):
        self.idl: Optional[Dict] = None
        self._raw_types: Dict[str, Dict] = {}
        self._resolved: Dict[str, TypeDescriptor] = {}

    def parse_file(self, path: Union[str, Path]) -> Schema:
        """Parse an IDL file from disk."""
        path = Path(path)
        try:
            text = path.read_text()
        except OSError as e:
            raise SchemaError(f"{path}: error: {e}") from e
        return self.parse_text(text)

    def parse_text(self, text: str) -> Schema:
        """Parse IDL JSON text."""
        try:
            idl_data = json.loads(text)
        except json.JSONDecodeError as e:
            raise SchemaError(f"IDL is not valid JSON: {e}") from e
        return self.parse(idl_data)

    def parse(self, idl: Dict) -> Schema:
        """Parse an IDL dictionary."""
        if not isinstance(idl, dict):
            raise SchemaError("IDL must be a JSON object")
        self.idl = idl
        self._raw_types = {}
        self._resolved = {}

        metadata = idl.get("metadata") if isinstance(idl.get("metadata"), dict) else {}
        schema = Schema(
            name=idl.get("name") or metadata.get("name") or "Unknown",
            version=idl.get("version") or metadata.get("version"),
            address=idl.get("address") or metadata.get("address"),
        )

        self._collect_raw_types(idl)
        for name in self._raw_types:
            schema.types[name] = self._resolve_defined(name, [])

        for acc_data in self._list(idl, "accounts"):
            name = acc_data.get("name")
            disc = acc_data.get("discriminator")
            if isinstance(disc, list):
                schema.account_discriminators[name] = self._byte_list(disc, f"account {name}")
            else:
                schema.account_discriminators[name] = sighash("account", name)

        seen = set()
        for ix_data in self._list(idl, "instructions"):
            ix = self._parse_instruction(ix_data)
            if ix.name in seen:
                raise SchemaError(f"Duplicate instruction name: {ix.name}")
            seen.add(ix.name)
            schema.instructions.append(ix)

        logger.debug(
            "Loaded IDL %s: %d instructions, %d types",
            schema.name, len(schema.instructions), len(schema.types),
        )
        return schema

    # Types

    def _collect_raw_types(self, idl: Dict) -> None:
        for type_def in self._list(idl, "types"):
            self._add_raw_type(type_def)
        # Legacy IDLs describe account layouts inline under "accounts"
        for acc_def in self._list(idl, "accounts"):
            if "type" in acc_def:
                self._add_raw_type(acc_def)

    def _add_raw_type(self, type_def: Dict) -> None:
        name = type_def.get("name")
        if not isinstance(name, str) or not name:
            raise SchemaError(f"Type definition without a name: {type_def}")
        if name in self._raw_types:
            raise SchemaError(f"Duplicate type definition: {name}")
        if not isinstance(type_def.get("type"), dict):
            raise SchemaError(f"Type definition {name} has no type body")
        self._raw_types[name] = type_def

    def _resolve_defined(self, name: str, stack: List[str]) -> TypeDescriptor:
        if name in self._resolved:
            return self._resolved[name]
        if name in stack:
            cycle = " -> ".join(stack[stack.index(name):] + [name])
            raise SchemaError(f"Cyclic type definition: {cycle}")
        type_def = self._raw_types.get(name)
        if type_def is None:
            raise SchemaError(f"Type definition with name {name} not found")

        stack = stack + [name]
        body = type_def["type"]
        kind = body.get("kind")
        if kind == "struct":
            descriptor = StructType(name=name, fields=self._parse_fields(body.get("fields", []), stack))
        elif kind == "enum":
            descriptor = self._parse_enum(name, body.get("variants", []), stack)
        elif kind in ("alias", "type"):
            descriptor = self._parse_type(body.get("value"), stack)
        else:
            raise SchemaError(f"Type {name} has unsupported kind: {kind}")

        self._resolved[name] = descriptor
        return descriptor

    def _parse_fields(self, fields: List[Any], stack: List[str]) -> tuple:
        parsed = []
        names = set()
        for i, field_data in enumerate(fields):
            if isinstance(field_data, dict) and "name" in field_data:
                name = field_data["name"]
                ty = self._parse_type(field_data.get("type"), stack)
            else:
                # Tuple struct: fields are bare types, named by position
                name = str(i)
                ty = self._parse_type(field_data, stack)
            if name in names:
                raise SchemaError(f"Duplicate field {name} in {stack[-1]}")
            names.add(name)
            parsed.append(StructField(name=name, type=ty))
        return tuple(parsed)

    def _parse_enum(self, name: str, variants: List[Dict], stack: List[str]) -> EnumType:
        if len(variants) > MAX_ENUM_VARIANTS:
            raise SchemaError(f"Enum {name} has {len(variants)} variants; at most 256 fit a u8 tag")
        parsed = []
        for variant in variants:
            vname = variant.get("name")
            if not isinstance(vname, str):
                raise SchemaError(f"Enum {name} has a variant without a name")
            fields = variant.get("fields")
            payload = None
            if fields:
                if all(isinstance(f, dict) and "name" in f for f in fields):
                    payload = StructType(name=vname, fields=self._parse_fields(fields, stack))
                else:
                    elements = tuple(
                        self._parse_type(f.get("type") if isinstance(f, dict) else f, stack)
                        for f in fields
                    )
                    payload = elements[0] if len(elements) == 1 else TupleType(elements)
            parsed.append(EnumVariant(name=vname, payload=payload))
        if len({v.name for v in parsed}) != len(parsed):
            raise SchemaError(f"Enum {name} has duplicate variant names")
        return EnumType(name=name, variants=tuple(parsed))

    def _parse_type(self, raw: Any, stack: List[str]) -> TypeDescriptor:
        """Parse an IDL type expression into a descriptor."""
        if isinstance(raw, str):
            if raw in PRIMITIVE_TYPES:
                return PRIMITIVE_TYPES[raw]
            if raw in UNSUPPORTED_TYPES:
                raise SchemaError(f"Type {raw} is not supported")
            raise SchemaError(f"Unknown type: {raw}")

        if not isinstance(raw, dict) or len(raw) != 1:
            raise SchemaError(f"Malformed type expression: {raw!r}")

        (key, value), = raw.items()
        if key == "vec":
            return VecType(self._parse_type(value, stack))
        if key == "option":
            return OptionType(self._parse_type(value, stack))
        if key == "array":
            if not isinstance(value, list) or len(value) != 2 or not isinstance(value[1], int):
                raise SchemaError(f"Malformed array type: {raw!r}")
            if value[1] < 0:
                raise SchemaError(f"Array length must not be negative: {raw!r}")
            return ArrayType(self._parse_type(value[0], stack), value[1])
        if key == "defined":
            name = value.get("name") if isinstance(value, dict) else value
            if not isinstance(name, str):
                raise SchemaError(f"Malformed defined type: {raw!r}")
            return self._resolve_defined(name, stack)
        raise SchemaError(f"Type {key} is not supported")

    # Instructions

    def _parse_instruction(self, ix_data: Dict) -> InstructionSpec:
        """Parse a single instruction from IDL."""
        name = ix_data.get("name")
        if not isinstance(name, str) or not name:
            raise SchemaError(f"Instruction without a name: {ix_data}")

        disc = ix_data.get("discriminator")
        if isinstance(disc, list):
            discriminator = self._byte_list(disc, f"instruction {name}")
        else:
            discriminator = sighash("global", name)

        arguments = []
        for arg_data in ix_data.get("args", []):
            arg_name = arg_data.get("name", "arg")
            try:
                arg_type = self._parse_type(arg_data.get("type"), [])
            except SchemaError as e:
                raise SchemaError(f"Instruction {name}, argument {arg_name}: {e}") from e
            arguments.append(ArgumentSpec(
                name=arg_name,
                type=arg_type,
                description=self._first_doc(arg_data),
            ))

        accounts = [self._parse_account_role(name, acc) for acc in ix_data.get("accounts", [])]
        seen = set()
        for acc in accounts:
            if acc.name in seen:
                raise SchemaError(f"Instruction {name}: duplicate account {acc.name}")
            seen.add(acc.name)

        returns = None
        if ix_data.get("returns") is not None:
            returns = self._parse_type(ix_data["returns"], [])

        return InstructionSpec(
            name=name,
            discriminator=discriminator,
            arguments=arguments,
            accounts=accounts,
            returns=returns,
            docs=list(ix_data.get("docs") or []),
        )

    def _parse_account_role(self, ix_name: str, acc_data: Dict) -> AccountRole:
        """Parse an account from an instruction's account list."""
        name = acc_data.get("name", "unknown")
        if "accounts" in acc_data:
            raise SchemaError(f"Instruction {ix_name}: nested accounts ({name}) are not supported")

        # Old format: isMut, isSigner
        # New format: writable, signer
        is_writable = acc_data.get("writable", acc_data.get("isMut", False))
        is_signer = acc_data.get("signer", acc_data.get("isSigner", False))

        pda = None
        if isinstance(acc_data.get("pda"), dict):
            pda = self._parse_pda(ix_name, name, acc_data["pda"])

        return AccountRole(
            name=name,
            is_signer=bool(is_signer),
            is_writable=bool(is_writable),
            description=self._first_doc(acc_data),
            pda=pda,
        )

    def _parse_pda(self, ix_name: str, acc_name: str, pda: Dict) -> PdaDerivation:
        where = f"Instruction {ix_name}, account {acc_name}"
        seeds = tuple(self._parse_seed(where, s) for s in pda.get("seeds", []))
        program = None
        if isinstance(pda.get("program"), dict):
            program = self._parse_seed(where, pda["program"])
        return PdaDerivation(seeds=seeds, program=program)

    def _parse_seed(self, where: str, seed: Dict) -> Seed:
        kind = seed.get("kind")
        if kind == "const":
            value = seed.get("value")
            if isinstance(value, list):
                return Seed(SeedKind.CONST, value=self._byte_list(value, where))
            if isinstance(value, str):
                if seed.get("type") in ("publicKey", "pubkey"):
                    try:
                        return Seed(SeedKind.CONST, value=base58.b58decode(value))
                    except ValueError as e:
                        raise SchemaError(f"{where}: invalid pubkey seed {value!r}") from e
                return Seed(SeedKind.CONST, value=value.encode())
            raise SchemaError(f"{where}: unsupported const seed value {value!r}")
        if kind in ("arg", "account"):
            path = seed.get("path")
            if not isinstance(path, str) or not path:
                raise SchemaError(f"{where}: {kind} seed without a path")
            return Seed(SeedKind(kind), path=path)
        raise SchemaError(f"{where}: unsupported seed kind {kind!r}")

    # Helpers

    @staticmethod
    def _list(idl: Dict, key: str) -> List[Dict]:
        value = idl.get(key) or []
        if not isinstance(value, list) or not all(isinstance(v, dict) for v in value):
            raise SchemaError(f"IDL field '{key}' must be a list of objects")
        return value

    @staticmethod
    def _byte_list(values: List[Any], where: str) -> bytes:
        if not values or not all(isinstance(b, int) and 0 <= b <= 255 for b in values):
            raise SchemaError(f"{where}: discriminator/seed must be a list of bytes")
        return bytes(values)

    @staticmethod
    def _first_doc(data: Dict) -> Optional[str]:
        docs = data.get("docs")
        return docs[0] if docs else None


def load_schema(raw_idl_text: str) -> Schema:
    """Build a Schema from IDL JSON text."""
    return IDLParser().parse_text(raw_idl_text)


def load_schema_file(path: Union[str, Path]) -> Schema:
    """Build a Schema from an IDL JSON file."""
    return IDLParser().parse_file(path)
