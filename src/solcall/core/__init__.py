from .accounts import (
    SYSTEM_PROGRAM,
    AccountSource,
    ResolutionResult,
    ResolvedAccount,
    classify_token,
    derive_address,
    parse_address,
    resolve_accounts,
)
from .rpc import RpcTransport
from .signer import load_keypair, sign_transaction, write_keypair_file
from .tx_builder import (
    BuiltTransaction,
    SubmissionResult,
    build_transaction,
    extract_return_data,
    fetch_account_value,
    submit,
)
