"""
CLI entry point for solcall.

Usage:
    solcall show --idl flipper.json
    solcall encode --idl flipper.json --instruction new --data true --accounts new self system --program <ID>
    solcall call --idl flipper.json --program <ID> --instruction flip --accounts <DATA_ACCOUNT>
    solcall account --idl flipper.json --address <ADDR> --type FlipperData
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.logging import RichHandler
from solders.keypair import Keypair

from .codec import encode_instruction
from .config import SolcallConfig, load_config
from .core import (
    RpcTransport,
    build_transaction,
    fetch_account_value,
    load_keypair,
    resolve_accounts,
    submit,
    write_keypair_file,
)
from .core.accounts import ResolutionResult
from .errors import ConfigError, SolcallError
from .report import (
    emit_json,
    error_to_dict,
    render_account_value,
    render_built,
    render_error,
    render_result,
    render_schema,
    schema_to_dict,
)
from .schema import Schema, load_schema_file

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _program_id(args: argparse.Namespace, schema: Schema) -> str:
    program_id = args.program or schema.address
    if not program_id:
        raise ConfigError("No program id: pass --program or use an IDL that carries an address")
    return program_id


def _wants_self(tokens: List[str]) -> bool:
    return "self" in tokens


def persist_generated(resolution: ResolutionResult, keypair_dir: Path) -> Dict[str, str]:
    """Write every freshly generated keypair as ``<account>-<pubkey>.json``."""
    files = {}
    for acc in resolution.generated:
        path = write_keypair_file(acc.keypair, keypair_dir / f"{acc.name}-{acc.pubkey}.json")
        files[acc.name] = str(path)
    return files


def run_show(args: argparse.Namespace) -> int:
    """Describe instructions from an IDL."""
    schema = load_schema_file(args.idl)
    instructions = [schema.lookup_instruction(args.instruction)] if args.instruction else schema.instructions

    if args.output_json:
        emit_json(schema_to_dict(schema, instructions))
    else:
        render_schema(console, schema, instructions)
    return 0


def run_encode(args: argparse.Namespace) -> int:
    """Encode an instruction and resolve its accounts without sending anything."""
    schema = load_schema_file(args.idl)
    ix = schema.lookup_instruction(args.instruction)
    data = encode_instruction(ix, args.data)

    program_id = _program_id(args, schema)
    if _wants_self(args.accounts):
        config = load_config(keypair_path=args.payer)
        signer = load_keypair(config.keypair_path)
    else:
        # Nothing refers to the caller; any keypair will do
        signer = Keypair()

    resolution = resolve_accounts(ix, args.accounts, signer, program_id, args.data)
    built = build_transaction(program_id, data, resolution.accounts, ix.name)

    if args.output_json:
        emit_json(built.to_dict())
    else:
        render_built(console, built)
    return 0


def run_call(args: argparse.Namespace) -> int:
    """Encode, sign, send and confirm one instruction."""
    config: SolcallConfig = load_config(
        rpc_url=args.rpc_url,
        keypair_path=args.payer,
        commitment=args.commitment,
        confirm_timeout=args.timeout,
    )
    schema = load_schema_file(args.idl)
    ix = schema.lookup_instruction(args.instruction)
    data = encode_instruction(ix, args.data)

    payer = load_keypair(config.keypair_path)
    program_id = _program_id(args, schema)
    resolution = resolve_accounts(ix, args.accounts, payer, program_id, args.data)

    # Saved before sending so a failed confirmation does not lose the keys
    keypair_files = persist_generated(resolution, Path(args.keypair_dir).expanduser())

    if not args.output_json:
        console.print(f"[dim]Sending {ix.name} to {program_id} via {config.rpc_url}[/dim]")

    with RpcTransport(config.rpc_url, commitment=config.commitment) as transport:
        result = submit(
            program_id,
            data,
            resolution.accounts,
            payer,
            transport,
            returns=ix.returns,
            timeout=config.confirm_timeout,
            strict_decode=args.strict_decode,
            instruction_name=ix.name,
        )
    result.keypair_files = keypair_files

    if args.output_json:
        emit_json(result.to_dict())
    else:
        render_result(console, result)
    return 1 if result.return_error is not None else 0


def run_account(args: argparse.Namespace) -> int:
    """Fetch an account and decode its data."""
    config = load_config(rpc_url=args.rpc_url, commitment=args.commitment)
    schema = load_schema_file(args.idl)

    with RpcTransport(config.rpc_url, commitment=config.commitment) as transport:
        if args.raw:
            data = transport.get_account_data(args.address)
            if args.output_json:
                emit_json({"address": args.address, "data_hex": data.hex(), "length": len(data)})
            else:
                console.print(f"[bold]{args.address}[/bold] ({len(data)} bytes)")
                console.print(data.hex())
            return 0

        value = fetch_account_value(
            transport,
            schema,
            args.address,
            args.type,
            skip_discriminator=not args.no_discriminator,
            strict=args.strict_decode,
        )

    if args.output_json:
        emit_json({"address": args.address, "type": args.type, "value": value.to_json()})
    else:
        render_account_value(console, args.address, args.type, value)
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--idl", type=str, required=True, help="Path to the program's IDL JSON file")
    common.add_argument("--output-json", action="store_true", help="Print a JSON document instead of text")
    common.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    network = argparse.ArgumentParser(add_help=False)
    network.add_argument("--rpc-url", "-u", type=str, help="RPC URL or moniker (localhost, devnet, testnet, mainnet-beta)")
    network.add_argument(
        "--commitment",
        type=str,
        choices=["processed", "confirmed", "finalized"],
        help="Commitment level (default: from config, else confirmed)",
    )

    parser = argparse.ArgumentParser(
        prog="solcall",
        description="Call Solana programs from their IDL",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # show command
    show_parser = subparsers.add_parser("show", parents=[common], help="Describe instructions in an IDL")
    show_parser.add_argument("--instruction", "-i", type=str, help="Only this instruction")

    # encode command
    encode_parser = subparsers.add_parser(
        "encode", parents=[common], help="Encode an instruction and resolve accounts (dry run)"
    )
    encode_parser.add_argument("--instruction", "-i", type=str, required=True, help="Instruction name")
    encode_parser.add_argument("--data", "-d", nargs="*", default=[], help="Argument values in declared order")
    encode_parser.add_argument(
        "--accounts", "-a", nargs="*", default=[],
        help="Account tokens: new, self, system, a keypair file or an address",
    )
    encode_parser.add_argument("--program", "-p", type=str, help="Program id (default: IDL address)")
    encode_parser.add_argument("--payer", type=str, help="Keypair file that 'self' refers to")

    # call command
    call_parser = subparsers.add_parser(
        "call", parents=[common, network], help="Send an instruction and wait for confirmation"
    )
    call_parser.add_argument("--instruction", "-i", type=str, required=True, help="Instruction name")
    call_parser.add_argument("--data", "-d", nargs="*", default=[], help="Argument values in declared order")
    call_parser.add_argument(
        "--accounts", "-a", nargs="*", default=[],
        help="Account tokens: new, self, system, a keypair file or an address",
    )
    call_parser.add_argument("--program", "-p", type=str, help="Program id (default: IDL address)")
    call_parser.add_argument("--payer", type=str, help="Fee payer keypair file (default: Solana CLI keypair)")
    call_parser.add_argument(
        "--keypair-dir", type=str, default=".", help="Where generated keypairs are saved (default: .)"
    )
    call_parser.add_argument("--timeout", type=float, help="Seconds to wait for confirmation (default: 60)")
    call_parser.add_argument(
        "--strict-decode", action="store_true", help="Fail when return data has trailing bytes"
    )

    # account command
    account_parser = subparsers.add_parser(
        "account", parents=[common, network], help="Fetch and decode account data"
    )
    account_parser.add_argument("--address", type=str, required=True, help="Account address")
    account_parser.add_argument("--type", "-t", type=str, help="IDL type to decode the data as")
    account_parser.add_argument("--raw", action="store_true", help="Print the raw bytes instead")
    account_parser.add_argument(
        "--no-discriminator", action="store_true", help="Data has no 8-byte account discriminator"
    )
    account_parser.add_argument(
        "--strict-decode", action="store_true", help="Fail when the data has trailing bytes"
    )

    return parser


COMMANDS = {
    "show": run_show,
    "encode": run_encode,
    "call": run_call,
    "account": run_account,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command not in COMMANDS:
        parser.print_help()
        return 0

    configure_logging(args.verbose)

    if args.command == "account" and not args.raw and not args.type:
        parser.error("account needs --type unless --raw is given")

    try:
        return COMMANDS[args.command](args)
    except SolcallError as e:
        logger.debug("Command failed", exc_info=True)
        if args.output_json:
            emit_json(error_to_dict(e))
        else:
            render_error(err_console, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
