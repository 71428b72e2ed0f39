"""
Transaction Assembler/Submitter: turns encoded instruction data and
resolved accounts into a signed, confirmed transaction.
"""

import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from ..codec.decoder import decode_account, decode_value
from ..codec.values import DecodedValue
from ..errors import DecodeError, TransportError
from ..schema.models import Schema, TypeDescriptor
from .accounts import ResolvedAccount, parse_address
from .rpc import RpcTransport
from .signer import sign_transaction

logger = logging.getLogger(__name__)

RETURN_LOG_PREFIX = "Program return: "

DEFAULT_CONFIRM_TIMEOUT = 60.0


@dataclass
class BuiltTransaction:
    """An instruction with its resolved accounts, ready to sign."""
    program_id: Pubkey
    data: bytes
    accounts: List[ResolvedAccount]
    instruction_name: str = ""

    @property
    def data_base64(self) -> str:
        return base64.b64encode(self.data).decode()

    def to_instruction(self) -> Instruction:
        return Instruction(
            program_id=self.program_id,
            data=self.data,
            accounts=[acc.to_meta() for acc in self.accounts],
        )

    def signers(self, payer: Keypair) -> List[Keypair]:
        """Payer first, then every signing account that holds a keypair."""
        keypairs = [payer]
        keypairs.extend(acc.keypair for acc in self.accounts if acc.is_signer and acc.keypair is not None)
        return keypairs

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instruction": self.instruction_name,
            "program_id": str(self.program_id),
            "data_hex": self.data.hex(),
            "data_base64": self.data_base64,
            "accounts": [acc.to_dict() for acc in self.accounts],
        }


def build_transaction(
    program_id: Union[Pubkey, str],
    data: bytes,
    accounts: Sequence[ResolvedAccount],
    instruction_name: str = "",
) -> BuiltTransaction:
    if isinstance(program_id, str):
        program_id = parse_address(program_id)
    return BuiltTransaction(
        program_id=program_id,
        data=data,
        accounts=list(accounts),
        instruction_name=instruction_name,
    )


@dataclass
class SubmissionResult:
    """Outcome of a confirmed submission."""
    signature: str
    accounts: List[ResolvedAccount]
    return_value: Optional[DecodedValue] = None
    return_error: Optional[str] = None
    logs: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    # Filled in by the caller once generated keypairs are persisted
    keypair_files: Dict[str, str] = field(default_factory=dict)

    @property
    def generated(self) -> List[ResolvedAccount]:
        return [acc for acc in self.accounts if acc.generated]

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "signature": self.signature,
            "accounts": [acc.to_dict() for acc in self.accounts],
            "new_accounts": [
                {"pubkey": str(acc.pubkey), "file_name": self.keypair_files.get(acc.name)}
                for acc in self.generated
            ],
        }
        if self.return_value is not None:
            result["decoded_return_data"] = str(self.return_value)
            result["return_value"] = self.return_value.to_json()
        if self.return_error is not None:
            result["return_error"] = self.return_error
        if self.logs:
            result["logs"] = self.logs
        if self.warnings:
            result["warnings"] = self.warnings
        return result


def extract_return_data(transaction: Optional[Dict[str, Any]], program_id: Pubkey) -> Optional[bytes]:
    """
    Return data from a fetched transaction.

    ``meta.returnData`` is preferred; older nodes only expose it as a
    ``Program return: <program> <base64>`` log line.
    """
    if not transaction:
        return None
    meta = transaction.get("meta") or {}

    return_data = meta.get("returnData")
    if return_data and return_data.get("data"):
        if return_data.get("programId", str(program_id)) == str(program_id):
            return base64.b64decode(return_data["data"][0])

    found = None
    for line in meta.get("logMessages") or []:
        if not line.startswith(RETURN_LOG_PREFIX):
            continue
        parts = line[len(RETURN_LOG_PREFIX):].split()
        if len(parts) == 2 and parts[0] == str(program_id):
            found = base64.b64decode(parts[1])
    return found


def submit(
    program_id: Union[Pubkey, str],
    data: bytes,
    resolved_accounts: Sequence[ResolvedAccount],
    payer: Keypair,
    transport: RpcTransport,
    returns: Optional[TypeDescriptor] = None,
    timeout: float = DEFAULT_CONFIRM_TIMEOUT,
    strict_decode: bool = False,
    sign: Callable[[Message, Sequence[Keypair], Hash], Transaction] = sign_transaction,
    instruction_name: str = "",
) -> SubmissionResult:
    """
    Sign, send and confirm one instruction, then decode its return value.

    Args:
        program_id: Program that receives the instruction
        data: Discriminator followed by encoded arguments
        resolved_accounts: Accounts in declared role order
        payer: Fee payer; always signs
        transport: RPC collaborator
        returns: Declared return type, if any
        timeout: Seconds to wait for confirmation
        strict_decode: Treat trailing return bytes as an error
        sign: Signing collaborator

    Returns:
        SubmissionResult for the confirmed transaction
    """
    built = build_transaction(program_id, data, resolved_accounts, instruction_name)

    blockhash = transport.get_latest_blockhash()
    message = Message.new_with_blockhash([built.to_instruction()], payer.pubkey(), blockhash)
    transaction = sign(message, built.signers(payer), blockhash)

    signature = str(transport.send_transaction(transaction))
    logger.info("Sent %s: %s", instruction_name or "transaction", signature)
    transport.confirm_transaction(signature, timeout)

    result = SubmissionResult(signature=signature, accounts=built.accounts)

    try:
        details = transport.get_transaction(signature)
    except TransportError as e:
        if returns is not None:
            result.return_error = f"Could not fetch transaction details: {e}"
        else:
            result.warnings.append(f"Could not fetch transaction details: {e}")
        return result

    result.logs = list(((details or {}).get("meta") or {}).get("logMessages") or [])

    if returns is None:
        return result

    raw = extract_return_data(details, built.program_id)
    if raw is None:
        result.return_error = "No return data found"
        return result

    try:
        result.return_value = decode_value(returns, raw, strict=strict_decode)
    except DecodeError as e:
        # The transaction is confirmed; only the decode failed
        result.return_error = f"{e.kind}: {e}"
    else:
        if result.return_value.trailing_bytes:
            result.warnings.append(
                f"{result.return_value.trailing_bytes} unexpected trailing bytes in return data"
            )
    return result


def fetch_account_value(
    transport: RpcTransport,
    schema: Schema,
    address: str,
    type_name: str,
    skip_discriminator: bool = True,
    strict: bool = False,
) -> DecodedValue:
    """Fetch an account's stored bytes and decode them as a named type."""
    data = transport.get_account_data(address)
    return decode_account(schema, type_name, data, skip_discriminator=skip_discriminator, strict=strict)
