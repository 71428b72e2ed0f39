"""
solcall: call Solana programs from their IDL.

Loads an Anchor/Solang IDL, encodes textual arguments as Borsh, binds
account tokens to the instruction's account roles, submits the
transaction and decodes the return value.
"""

__version__ = "0.1.0"

from .errors import SolcallError
from .schema import Schema, load_schema, load_schema_file
