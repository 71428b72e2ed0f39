"""
Error hierarchy for solcall.

Every error carries a stable ``kind`` string so scripting callers can
branch on the JSON error document instead of parsing messages.
"""

from typing import Any, Dict, Optional


class SolcallError(Exception):
    """Base class for all errors raised by solcall."""
    kind = "Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": str(self)}


class ConfigError(SolcallError):
    """Configuration or keypair file could not be read."""
    kind = "ConfigError"


# Schema

class SchemaError(SolcallError):
    """The IDL is malformed, references an undefined type or is cyclic."""
    kind = "SchemaError"


class NotFoundError(SolcallError):
    """An instruction or type name is not present in the schema."""
    kind = "NotFound"


# Encoding

class EncodeError(SolcallError):
    """
    A textual argument could not be encoded.

    The instruction-level encoder fills in ``position``, ``argument`` and
    ``type_label`` before the error leaves the codec.
    """
    kind = "EncodeError"

    def __init__(
        self,
        message: str,
        type_label: Optional[str] = None,
        position: Optional[int] = None,
        argument: Optional[str] = None,
    ):
        super().__init__(message)
        self.type_label = type_label
        self.position = position
        self.argument = argument

    def with_context(self, position: int, argument: str, type_label: str) -> "EncodeError":
        self.position = position
        self.argument = argument
        self.type_label = type_label
        return self

    def __str__(self) -> str:
        if self.position is None:
            return self.message
        return (
            f"argument {self.position + 1} ({self.argument}: {self.type_label}): "
            f"{self.message}"
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.position is not None:
            data["position"] = self.position
            data["argument"] = self.argument
            data["type"] = self.type_label
        return data


class OutOfRange(EncodeError):
    kind = "OutOfRange"


class InvalidBoolLiteral(EncodeError):
    kind = "InvalidBoolLiteral"


class LengthMismatch(EncodeError):
    kind = "LengthMismatch"


class UnknownVariant(EncodeError):
    kind = "UnknownVariant"


class MalformedInput(EncodeError):
    kind = "MalformedInput"


class ArgumentCountMismatch(EncodeError):
    kind = "ArgumentCountMismatch"


# Decoding

class DecodeError(SolcallError):
    """Bytes could not be decoded with the given type descriptor."""
    kind = "DecodeError"


class TruncatedData(DecodeError):
    kind = "TruncatedData"


class MalformedData(DecodeError):
    kind = "MalformedData"


class UnexpectedTrailingData(DecodeError):
    """Raised only by strict decoding; otherwise reported as a warning."""
    kind = "UnexpectedTrailingData"


# Account resolution

class AccountResolutionError(SolcallError):
    kind = "AccountResolutionError"


class AccountCountMismatch(AccountResolutionError):
    kind = "AccountCountMismatch"


class InvalidAddress(AccountResolutionError):
    kind = "InvalidAddress"


class MissingSigner(AccountResolutionError):
    kind = "MissingSigner"


# Submission

class SubmissionError(SolcallError):
    kind = "SubmissionError"


class TransportError(SubmissionError):
    """Network or RPC-level failure reported by the transport."""
    kind = "TransportError"


class TransactionRejected(SubmissionError):
    kind = "TransactionRejected"


class ConfirmationTimeout(SubmissionError):
    kind = "ConfirmationTimeout"
