"""
Runtime configuration.

Sources, lowest precedence first: built-in defaults, the Solana CLI
config file, a ``.env`` file in the working directory or one of its
parents, ``SOLCALL_*`` environment variables, explicit overrides (CLI
flags).
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_RPC_URL = "http://127.0.0.1:8899"
DEFAULT_KEYPAIR = "~/.config/solana/id.json"
DEFAULT_COMMITMENT = "confirmed"
DEFAULT_CONFIRM_TIMEOUT = 60.0

CLUSTER_URLS = {
    "localhost": DEFAULT_RPC_URL,
    "local": DEFAULT_RPC_URL,
    "devnet": "https://api.devnet.solana.com",
    "testnet": "https://api.testnet.solana.com",
    "mainnet-beta": "https://api.mainnet-beta.solana.com",
    "mainnet": "https://api.mainnet-beta.solana.com",
}

COMMITMENTS = ("processed", "confirmed", "finalized")


def load_env(start: Optional[Path] = None, max_depth: int = 5):
    """Load .env file from parent directories."""
    current = start or Path.cwd()
    for _ in range(max_depth):
        env_file = current / ".env"
        if env_file.exists():
            with open(env_file) as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith("#") and "=" in line:
                        key, value = line.split("=", 1)
                        os.environ.setdefault(key.strip(), value.strip().strip("\"'"))
            logger.debug("Loaded environment from %s", env_file)
            break
        current = current.parent


def load_solana_cli_config() -> Dict[str, str]:
    """Top-level ``key: value`` pairs from the Solana CLI config.yml."""
    path = os.environ.get("SOLANA_CONFIG")
    cfg_path = Path(path) if path else Path.home() / ".config" / "solana" / "cli" / "config.yml"
    try:
        text = cfg_path.read_text()
    except OSError:
        return {}
    cfg: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or ":" not in line:
            continue
        key, value = line.split(":", 1)
        key = key.strip()
        value = value.strip().strip("\"'")
        if key:
            cfg[key] = value
    return cfg


def normalize_rpc_url(value: str) -> str:
    """Map a cluster moniker to its URL; URLs pass through unchanged."""
    return CLUSTER_URLS.get(value.strip().lower(), value.strip())


@dataclass
class SolcallConfig:
    rpc_url: str = DEFAULT_RPC_URL
    keypair_path: str = DEFAULT_KEYPAIR
    commitment: str = DEFAULT_COMMITMENT
    confirm_timeout: float = DEFAULT_CONFIRM_TIMEOUT


def load_config(
    rpc_url: Optional[str] = None,
    keypair_path: Optional[str] = None,
    commitment: Optional[str] = None,
    confirm_timeout: Optional[float] = None,
    use_env_file: bool = True,
) -> SolcallConfig:
    """Build the effective configuration; arguments override every other source."""
    if use_env_file:
        load_env()
    solana_cfg = load_solana_cli_config()
    env = os.environ

    config = SolcallConfig()
    if solana_cfg.get("json_rpc_url"):
        config.rpc_url = solana_cfg["json_rpc_url"]
    if solana_cfg.get("keypair_path"):
        config.keypair_path = solana_cfg["keypair_path"]
    if solana_cfg.get("commitment"):
        config.commitment = solana_cfg["commitment"]

    config.rpc_url = rpc_url or env.get("SOLCALL_RPC_URL") or config.rpc_url
    config.keypair_path = keypair_path or env.get("SOLCALL_KEYPAIR") or config.keypair_path
    config.commitment = commitment or env.get("SOLCALL_COMMITMENT") or config.commitment

    if confirm_timeout is None and env.get("SOLCALL_CONFIRM_TIMEOUT"):
        try:
            confirm_timeout = float(env["SOLCALL_CONFIRM_TIMEOUT"])
        except ValueError:
            raise ConfigError(
                f"SOLCALL_CONFIRM_TIMEOUT must be a number, got {env['SOLCALL_CONFIRM_TIMEOUT']!r}"
            ) from None
    if confirm_timeout is not None:
        if confirm_timeout <= 0:
            raise ConfigError(f"Confirmation timeout must be positive, got {confirm_timeout}")
        config.confirm_timeout = confirm_timeout

    config.rpc_url = normalize_rpc_url(config.rpc_url)
    if config.commitment not in COMMITMENTS:
        raise ConfigError(
            f"Unknown commitment {config.commitment!r} (expected one of {', '.join(COMMITMENTS)})"
        )

    logger.debug("Using RPC %s, keypair %s", config.rpc_url, config.keypair_path)
    return config
