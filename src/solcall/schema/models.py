"""
Data models for a loaded IDL.

These models represent the types, instruction signatures and account
roles of a program, fully resolved from its IDL. Type descriptors form a
closed tagged variant: one frozen dataclass per kind.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Optional, Tuple, Union

from ..errors import NotFoundError


@dataclass(frozen=True)
class BoolType:
    @property
    def label(self) -> str:
        return "bool"


@dataclass(frozen=True)
class IntType:
    bits: int
    signed: bool = False

    @property
    def label(self) -> str:
        return f"{'i' if self.signed else 'u'}{self.bits}"

    @property
    def min_value(self) -> int:
        return -(1 << (self.bits - 1)) if self.signed else 0

    @property
    def max_value(self) -> int:
        return (1 << (self.bits - 1)) - 1 if self.signed else (1 << self.bits) - 1


@dataclass(frozen=True)
class FixedBytesType:
    """Address-like fixed-length value, written as base58 text."""
    length: int = 32

    @property
    def label(self) -> str:
        return "pubkey" if self.length == 32 else f"bytes{self.length}"


@dataclass(frozen=True)
class StringType:
    @property
    def label(self) -> str:
        return "string"


@dataclass(frozen=True)
class BytesType:
    @property
    def label(self) -> str:
        return "bytes"


@dataclass(frozen=True)
class VecType:
    element: "TypeDescriptor"

    @property
    def label(self) -> str:
        return f"vec<{self.element.label}>"


@dataclass(frozen=True)
class ArrayType:
    element: "TypeDescriptor"
    length: int

    @property
    def label(self) -> str:
        return f"[{self.element.label}; {self.length}]"


@dataclass(frozen=True)
class OptionType:
    inner: "TypeDescriptor"

    @property
    def label(self) -> str:
        return f"option<{self.inner.label}>"


@dataclass(frozen=True)
class TupleType:
    """Unnamed payload of an enum variant with several fields."""
    elements: Tuple["TypeDescriptor", ...]

    @property
    def label(self) -> str:
        return "(" + ", ".join(e.label for e in self.elements) + ")"


@dataclass(frozen=True)
class StructField:
    name: str
    type: "TypeDescriptor"


@dataclass(frozen=True)
class StructType:
    name: str
    fields: Tuple[StructField, ...]

    @property
    def label(self) -> str:
        return self.name

    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]


@dataclass(frozen=True)
class EnumVariant:
    name: str
    payload: Optional["TypeDescriptor"] = None


@dataclass(frozen=True)
class EnumType:
    name: str
    variants: Tuple[EnumVariant, ...]

    @property
    def label(self) -> str:
        return self.name

    def variant_index(self, name: str) -> Optional[int]:
        for i, variant in enumerate(self.variants):
            if variant.name == name:
                return i
        return None

    def variant_names(self) -> List[str]:
        return [v.name for v in self.variants]


TypeDescriptor = Union[
    BoolType,
    IntType,
    FixedBytesType,
    StringType,
    BytesType,
    VecType,
    ArrayType,
    OptionType,
    TupleType,
    StructType,
    EnumType,
]

PUBKEY = FixedBytesType(32)


class SeedKind(Enum):
    """Source of a PDA seed."""
    CONST = "const"
    ARG = "arg"
    ACCOUNT = "account"


@dataclass(frozen=True)
class Seed:
    kind: SeedKind
    value: bytes = b""  # CONST only
    path: Optional[str] = None  # ARG / ACCOUNT


@dataclass(frozen=True)
class PdaDerivation:
    """Seeds for a program-derived address, plus an optional owner override."""
    seeds: Tuple[Seed, ...]
    program: Optional[Seed] = None


@dataclass
class ArgumentSpec:
    """An instruction argument."""
    name: str
    type: TypeDescriptor
    description: Optional[str] = None


@dataclass
class AccountRole:
    """A declared position in an instruction's account list."""
    name: str
    is_signer: bool = False
    is_writable: bool = False
    description: Optional[str] = None
    pda: Optional[PdaDerivation] = None

    @property
    def is_derived(self) -> bool:
        return self.pda is not None


@dataclass
class InstructionSpec:
    """A single callable instruction of the program."""
    name: str
    discriminator: bytes
    arguments: List[ArgumentSpec] = field(default_factory=list)
    accounts: List[AccountRole] = field(default_factory=list)
    returns: Optional[TypeDescriptor] = None
    docs: List[str] = field(default_factory=list)

    def token_roles(self) -> List[AccountRole]:
        """Roles that are bound to CLI account tokens (everything not derived)."""
        return [acc for acc in self.accounts if not acc.is_derived]


def _normalize_name(name: str) -> str:
    return name.replace("_", "").lower()


@dataclass
class Schema:
    """A fully resolved IDL."""
    name: str = "Unknown"
    version: Optional[str] = None
    address: Optional[str] = None
    instructions: List[InstructionSpec] = field(default_factory=list)
    types: Dict[str, TypeDescriptor] = field(default_factory=dict)
    # Account type name -> 8-byte account discriminator
    account_discriminators: Dict[str, bytes] = field(default_factory=dict)

    def lookup_instruction(self, name: str) -> InstructionSpec:
        """
        Get instruction by name.

        An exact match wins; otherwise ``initUser`` and ``init_user`` are
        treated as the same name.
        """
        for ix in self.instructions:
            if ix.name == name:
                return ix
        wanted = _normalize_name(name)
        for ix in self.instructions:
            if _normalize_name(ix.name) == wanted:
                return ix
        available = ", ".join(ix.name for ix in self.instructions) or "none"
        raise NotFoundError(f"Instruction {name} not found (available: {available})")

    def lookup_type(self, name: str) -> TypeDescriptor:
        try:
            return self.types[name]
        except KeyError:
            raise NotFoundError(f"Type {name} not found") from None

    def summary(self) -> str:
        """Return a human-readable summary."""
        lines = [
            f"Program: {self.name}",
            f"Instructions: {len(self.instructions)}",
        ]
        for ix in self.instructions:
            args = ", ".join(f"{a.name}: {a.type.label}" for a in ix.arguments)
            ret = f" -> {ix.returns.label}" if ix.returns is not None else ""
            lines.append(f"  • {ix.name}({args}){ret}")
        return "\n".join(lines)
