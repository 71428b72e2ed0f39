"""
Text and JSON rendering for CLI output.
"""

import json
import sys
from typing import Any, Dict, List, Optional, TextIO

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .codec.values import DecodedValue
from .core.tx_builder import BuiltTransaction, SubmissionResult
from .errors import SolcallError
from .schema.models import InstructionSpec, Schema


def emit_json(data: Any, stream: Optional[TextIO] = None):
    """Write a JSON document to stdout (or ``stream``)."""
    stream = stream or sys.stdout
    stream.write(json.dumps(data, indent=2) + "\n")


def error_to_dict(error: SolcallError) -> Dict[str, Any]:
    return {"error": error.to_dict()}


def instruction_to_dict(ix: InstructionSpec) -> Dict[str, Any]:
    return {
        "name": ix.name,
        "discriminator": ix.discriminator.hex(),
        "arguments": [{"name": a.name, "type": a.type.label} for a in ix.arguments],
        "accounts": [
            {
                "name": acc.name,
                "signer": acc.is_signer,
                "writable": acc.is_writable,
                "derived": acc.is_derived,
            }
            for acc in ix.accounts
        ],
        "returns": ix.returns.label if ix.returns is not None else None,
        "docs": ix.docs,
    }


def schema_to_dict(schema: Schema, instructions: List[InstructionSpec]) -> Dict[str, Any]:
    return {
        "program": schema.name,
        "version": schema.version,
        "address": schema.address,
        "instructions": [instruction_to_dict(ix) for ix in instructions],
    }


def _account_flags(is_signer: bool, is_writable: bool, derived: bool = False) -> str:
    flags = []
    if is_signer:
        flags.append("signer")
    if is_writable:
        flags.append("writable")
    if derived:
        flags.append("pda")
    return ", ".join(flags) if flags else "-"


def render_schema(console: Console, schema: Schema, instructions: List[InstructionSpec]):
    console.print("[bold]Program Information[/bold]")
    console.print(f"  Name: {schema.name}")
    console.print(f"  Program ID: {schema.address or 'Not specified'}")
    console.print(f"  Instructions: {len(schema.instructions)}")
    console.print()

    for ix in instructions:
        args = ", ".join(f"{a.name}: {a.type.label}" for a in ix.arguments)
        ret = f" -> {ix.returns.label}" if ix.returns is not None else ""
        console.print(f"[bold cyan]{ix.name}[/bold cyan]({args}){ret}")
        for line in ix.docs:
            console.print(f"  [dim]{line}[/dim]")

        if ix.accounts:
            table = Table()
            table.add_column("#", justify="right", style="dim")
            table.add_column("Account", style="cyan")
            table.add_column("Flags", style="yellow")
            position = 0
            for acc in ix.accounts:
                # Derived accounts take no token on the command line
                if acc.is_derived:
                    slot = "-"
                else:
                    position += 1
                    slot = str(position)
                table.add_row(slot, acc.name, _account_flags(acc.is_signer, acc.is_writable, acc.is_derived))
            console.print(table)
        console.print()


def _accounts_table(accounts) -> Table:
    table = Table(title="Accounts")
    table.add_column("Role", style="cyan")
    table.add_column("Address")
    table.add_column("Flags", style="yellow")
    table.add_column("Source", style="dim")
    for acc in accounts:
        table.add_row(acc.name, str(acc.pubkey), _account_flags(acc.is_signer, acc.is_writable), acc.source.value)
    return table


def render_built(console: Console, built: BuiltTransaction):
    console.print(Panel(
        f"[bold]{built.instruction_name}[/bold]\n\n"
        f"[dim]Program: {built.program_id}[/dim]\n"
        f"Data (hex): {built.data.hex()}\n"
        f"Data (base64): {built.data_base64}",
        title="[bold]Instruction[/bold]",
    ))
    if built.accounts:
        console.print(_accounts_table(built.accounts))


def render_result(console: Console, result: SubmissionResult):
    console.print("[green]✓ Transaction confirmed[/green]")
    console.print(f"  Signature: {result.signature}")
    console.print(_accounts_table(result.accounts))

    for acc in result.generated:
        file_name = result.keypair_files.get(acc.name)
        suffix = f" (saved to {file_name})" if file_name else ""
        console.print(f"  [cyan]New account {acc.name}:[/cyan] {acc.pubkey}{suffix}")

    if result.return_value is not None:
        console.print(f"\n[bold]Return value:[/bold] {result.return_value}")
    if result.return_error is not None:
        console.print(f"\n[red]Could not decode return value: {result.return_error}[/red]")
    for warning in result.warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")


def render_account_value(console: Console, address: str, type_name: str, value: DecodedValue):
    console.print(f"[bold]{type_name}[/bold] at {address}")
    console.print_json(json.dumps(value.to_json()))


def render_error(console: Console, error: SolcallError):
    console.print(f"[red]Error ({error.kind}): {error}[/red]")
