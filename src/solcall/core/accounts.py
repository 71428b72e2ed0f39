"""
Account Resolver: binds command-line account tokens to an instruction's
declared account roles.

Tokens are matched positionally against the roles that are not derived
from seeds. Derived (PDA) roles are filled in afterwards from their seed
recipe, so they never consume a token.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import base58
from solders.instruction import AccountMeta
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from ..codec.encoder import encode_seed
from ..errors import (
    AccountCountMismatch,
    AccountResolutionError,
    InvalidAddress,
    MissingSigner,
)
from ..schema.models import AccountRole, InstructionSpec, PdaDerivation, Seed, SeedKind
from .signer import is_keypair_file, load_keypair

logger = logging.getLogger(__name__)

SYSTEM_PROGRAM = "11111111111111111111111111111111"

MAX_SEED_LENGTH = 32
MAX_SEEDS = 16


class AccountSource(Enum):
    """Where a resolved account's address came from."""
    NEW = "new"
    SELF = "self"
    SYSTEM = "system"
    KEYPAIR = "keypair"
    ADDRESS = "address"
    DERIVED = "derived"


KEYWORDS = {
    "new": AccountSource.NEW,
    "self": AccountSource.SELF,
    "system": AccountSource.SYSTEM,
}


def classify_token(token: str) -> AccountSource:
    """Exact keyword first, then keypair file, otherwise a literal address."""
    keyword = KEYWORDS.get(token)
    if keyword is not None:
        return keyword
    if is_keypair_file(token):
        return AccountSource.KEYPAIR
    return AccountSource.ADDRESS


def parse_address(text: str) -> Pubkey:
    """Base58 text to a Pubkey, rejecting anything that is not 32 bytes."""
    try:
        raw = base58.b58decode(text.strip())
    except ValueError as e:
        raise InvalidAddress(f"{text!r} is not valid base58: {e}") from e
    if len(raw) != 32:
        raise InvalidAddress(f"{text!r} decodes to {len(raw)} bytes, an address needs 32")
    return Pubkey(raw)


def derive_address(seeds: Sequence[bytes], program_id: Pubkey) -> Pubkey:
    """Canonical program-derived address for the seeds (bump discarded)."""
    if len(seeds) > MAX_SEEDS:
        raise AccountResolutionError(f"Too many PDA seeds: {len(seeds)} (max {MAX_SEEDS})")
    for seed in seeds:
        if len(seed) > MAX_SEED_LENGTH:
            raise AccountResolutionError(
                f"PDA seed of {len(seed)} bytes exceeds the {MAX_SEED_LENGTH}-byte limit"
            )
    address, _bump = Pubkey.find_program_address(list(seeds), program_id)
    return address


@dataclass
class ResolvedAccount:
    """A concrete account bound to one role."""
    name: str
    pubkey: Pubkey
    is_signer: bool
    is_writable: bool
    source: AccountSource
    keypair: Optional[Keypair] = None

    @property
    def generated(self) -> bool:
        return self.source is AccountSource.NEW

    def to_meta(self) -> AccountMeta:
        return AccountMeta(pubkey=self.pubkey, is_signer=self.is_signer, is_writable=self.is_writable)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "pubkey": str(self.pubkey),
            "is_signer": self.is_signer,
            "is_writable": self.is_writable,
            "source": self.source.value,
        }


@dataclass
class ResolutionResult:
    """Accounts in declared role order."""
    accounts: List[ResolvedAccount] = field(default_factory=list)

    @property
    def generated(self) -> List[ResolvedAccount]:
        return [acc for acc in self.accounts if acc.generated]

    def get(self, name: str) -> Optional[ResolvedAccount]:
        for acc in self.accounts:
            if acc.name == name:
                return acc
        return None


def _resolve_token(role: AccountRole, token: str, signer: Keypair) -> ResolvedAccount:
    source = classify_token(token)
    keypair: Optional[Keypair] = None

    if source is AccountSource.NEW:
        keypair = Keypair()
        pubkey = keypair.pubkey()
        logger.debug("Generated keypair %s for %s", pubkey, role.name)
    elif source is AccountSource.SELF:
        keypair = signer
        pubkey = signer.pubkey()
    elif source is AccountSource.SYSTEM:
        pubkey = Pubkey.from_string(SYSTEM_PROGRAM)
    elif source is AccountSource.KEYPAIR:
        keypair = load_keypair(token)
        pubkey = keypair.pubkey()
    else:
        pubkey = parse_address(token)

    if role.is_signer and keypair is None:
        raise MissingSigner(
            f"Account {role.name} must sign, but {token!r} has no keypair "
            f"(use new, self or a keypair file)"
        )

    # A freshly generated account always signs its own creation
    return ResolvedAccount(
        name=role.name,
        pubkey=pubkey,
        is_signer=role.is_signer or source is AccountSource.NEW,
        is_writable=role.is_writable,
        source=source,
        keypair=keypair,
    )


class _SeedPending(Exception):
    """A seed refers to a derived account that is not resolved yet."""


def _seed_bytes(
    seed: Seed,
    instruction: InstructionSpec,
    resolved: Dict[str, ResolvedAccount],
    args: Optional[Sequence[Any]],
) -> bytes:
    if seed.kind is SeedKind.CONST:
        return seed.value

    if seed.path is None or "." in seed.path:
        raise AccountResolutionError(f"Unsupported seed path {seed.path!r}")

    if seed.kind is SeedKind.ACCOUNT:
        if seed.path in resolved:
            return bytes(resolved[seed.path].pubkey)
        if any(role.name == seed.path for role in instruction.accounts):
            raise _SeedPending(seed.path)
        raise AccountResolutionError(f"Seed refers to unknown account {seed.path}")

    for position, arg in enumerate(instruction.arguments):
        if arg.name == seed.path:
            break
    else:
        raise AccountResolutionError(f"Seed refers to unknown argument {seed.path}")
    if args is None or position >= len(args):
        raise AccountResolutionError(f"Seed needs the value of argument {seed.path}")
    return encode_seed(arg.type, args[position])


def _derive_role(
    role: AccountRole,
    instruction: InstructionSpec,
    resolved: Dict[str, ResolvedAccount],
    program_id: Pubkey,
    args: Optional[Sequence[Any]],
    derive: Callable[[Sequence[bytes], Pubkey], Pubkey],
) -> ResolvedAccount:
    pda: PdaDerivation = role.pda
    seeds = [_seed_bytes(seed, instruction, resolved, args) for seed in pda.seeds]
    owner = program_id
    if pda.program is not None:
        raw = _seed_bytes(pda.program, instruction, resolved, args)
        if len(raw) != 32:
            raise AccountResolutionError(f"Program seed for {role.name} is {len(raw)} bytes, not an address")
        owner = Pubkey(raw)

    if role.is_signer:
        raise MissingSigner(f"Account {role.name} is program-derived and cannot sign")

    pubkey = derive(seeds, owner)
    logger.debug("Derived %s = %s", role.name, pubkey)
    return ResolvedAccount(
        name=role.name,
        pubkey=pubkey,
        is_signer=False,
        is_writable=role.is_writable,
        source=AccountSource.DERIVED,
    )


def resolve_accounts(
    instruction: InstructionSpec,
    tokens: Sequence[str],
    signer: Keypair,
    program_id: Union[Pubkey, str],
    args: Optional[Sequence[Any]] = None,
    derive: Callable[[Sequence[bytes], Pubkey], Pubkey] = derive_address,
) -> ResolutionResult:
    """
    Bind tokens to roles and fill in derived accounts.

    Args:
        instruction: Instruction whose account roles are being bound
        tokens: One token per non-derived role, in declared order
        signer: Keypair that ``self`` refers to
        program_id: Default owner for derived addresses
        args: Raw argument values, needed when a seed comes from an argument
        derive: PDA derivation function

    Returns:
        ResolutionResult with accounts in declared role order
    """
    if isinstance(program_id, str):
        program_id = parse_address(program_id)

    roles = instruction.token_roles()
    if len(tokens) != len(roles):
        names = ", ".join(role.name for role in roles) or "none"
        raise AccountCountMismatch(
            f"Instruction {instruction.name} expects {len(roles)} account tokens "
            f"({names}), got {len(tokens)}"
        )

    resolved: Dict[str, ResolvedAccount] = {}
    for role, token in zip(roles, tokens):
        resolved[role.name] = _resolve_token(role, token, signer)

    pending = [role for role in instruction.accounts if role.is_derived]
    while pending:
        waiting = []
        for role in pending:
            try:
                resolved[role.name] = _derive_role(role, instruction, resolved, program_id, args, derive)
            except _SeedPending:
                waiting.append(role)
        if len(waiting) == len(pending):
            names = ", ".join(role.name for role in waiting)
            raise AccountResolutionError(f"Cannot derive {names}: seeds refer to each other")
        pending = waiting

    return ResolutionResult(accounts=[resolved[role.name] for role in instruction.accounts])
