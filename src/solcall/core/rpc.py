"""
JSON-RPC transport to a Solana cluster.
"""

import base64
import logging
import time
from typing import Any, Dict, List, Optional

import httpx
from solders.hash import Hash
from solders.transaction import Transaction

from ..errors import (
    ConfirmationTimeout,
    NotFoundError,
    TransactionRejected,
    TransportError,
)

logger = logging.getLogger(__name__)

COMMITMENT_LEVELS = ["processed", "confirmed", "finalized"]

# JSON-RPC error codes that mean the cluster refused the transaction itself
REJECTION_CODES = {-32002, -32003}


class RpcError(TransportError):
    """An error object returned by the RPC node."""

    def __init__(self, method: str, error: Dict[str, Any]):
        self.code = error.get("code")
        self.data = error.get("data") or {}
        super().__init__(f"RPC error from {method}: {error.get('message', error)}")


class RpcTransport:
    """
    Synchronous Solana JSON-RPC client.

    Every network or protocol failure is raised as TransportError so the
    submitter can tell it apart from a transaction the cluster rejected.
    """

    def __init__(
        self,
        rpc_url: str,
        commitment: str = "confirmed",
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
        poll_interval: float = 0.5,
    ):
        """
        Initialize RPC client.

        Args:
            rpc_url: RPC endpoint URL
            commitment: Commitment level for reads and confirmation
            timeout: Per-request HTTP timeout in seconds
            client: Optional preconfigured httpx client
            poll_interval: Seconds between confirmation polls
        """
        if commitment not in COMMITMENT_LEVELS:
            raise ValueError(f"Unknown commitment level: {commitment}")
        self.rpc_url = rpc_url
        self.commitment = commitment
        self.poll_interval = poll_interval
        self._client = client or httpx.Client(timeout=timeout)
        self._request_id = 0

    def close(self):
        self._client.close()

    def __enter__(self) -> "RpcTransport":
        return self

    def __exit__(self, *exc):
        self.close()

    def _call(self, method: str, params: list = None) -> Any:
        """Make an RPC call."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }
        logger.debug("RPC %s -> %s", method, self.rpc_url)

        try:
            response = self._client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPError as e:
            raise TransportError(f"{method} failed: {e}") from e
        except ValueError as e:
            raise TransportError(f"{method} returned invalid JSON: {e}") from e

        if "error" in result:
            raise RpcError(method, result["error"])
        return result.get("result")

    def get_latest_blockhash(self) -> Hash:
        result = self._call("getLatestBlockhash", [{"commitment": self.commitment}])
        try:
            return Hash.from_string(result["value"]["blockhash"])
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError(f"Unexpected getLatestBlockhash response: {result!r}") from e

    def send_transaction(self, transaction: Transaction) -> str:
        """Send a signed transaction and return its signature."""
        encoded = base64.b64encode(bytes(transaction)).decode()
        try:
            return self._call(
                "sendTransaction",
                [encoded, {"encoding": "base64", "preflightCommitment": self.commitment}],
            )
        except RpcError as e:
            if e.code in REJECTION_CODES:
                logs = e.data.get("logs") or []
                detail = "\n".join(logs)
                raise TransactionRejected(f"{e.message}\n{detail}" if detail else e.message) from e
            raise

    def get_signature_statuses(self, signatures: List[str]) -> list:
        result = self._call("getSignatureStatuses", [signatures, {"searchTransactionHistory": False}])
        return (result or {}).get("value") or []

    def confirm_transaction(self, signature: str, timeout: float) -> Dict[str, Any]:
        """
        Poll until the signature reaches the configured commitment.

        Raises ConfirmationTimeout when ``timeout`` seconds pass first, and
        TransactionRejected when the transaction lands with an error.
        """
        wanted = COMMITMENT_LEVELS.index(self.commitment)
        deadline = time.monotonic() + timeout
        while True:
            statuses = self.get_signature_statuses([signature])
            # Missing or null entry: not seen by the node yet
            status = statuses[0] if statuses else None
            if status:
                if status.get("err"):
                    raise TransactionRejected(f"Transaction {signature} failed: {status['err']}")
                level = status.get("confirmationStatus") or "processed"
                if level not in COMMITMENT_LEVELS:
                    raise TransportError(f"Unknown confirmation status {level!r} for {signature}")
                if COMMITMENT_LEVELS.index(level) >= wanted:
                    logger.debug("Transaction %s reached %s", signature, level)
                    return status
            if time.monotonic() >= deadline:
                raise ConfirmationTimeout(
                    f"Transaction {signature} not {self.commitment} after {timeout:g}s"
                )
            time.sleep(self.poll_interval)

    def get_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        return self._call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "json",
                    "commitment": "finalized" if self.commitment == "finalized" else "confirmed",
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )

    def get_account_data(self, address: str) -> bytes:
        """Raw data stored in an account."""
        result = self._call("getAccountInfo", [address, {"encoding": "base64", "commitment": self.commitment}])
        value = (result or {}).get("value")
        if value is None:
            raise NotFoundError(f"Account {address} not found")
        try:
            return base64.b64decode(value["data"][0])
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise TransportError(f"Unexpected getAccountInfo response for {address}") from e
