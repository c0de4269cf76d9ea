"""
Executor configuration from the environment.

main.py calls load_dotenv() first, so a local .env works the same as
real environment variables. A missing or malformed BOT_KEYPAIR is fatal.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .protocol import (
    DEFAULT_DRIFT_BUFFER_SECONDS,
    DEFAULT_LOW_BALANCE_SOL,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_PROGRAM_ID,
    DEFAULT_RPC_URL,
    DEFAULT_SUBMIT_DELAY_SECONDS,
    LAMPORTS_PER_SOL,
)


class ConfigError(Exception):
    """Fatal startup misconfiguration. The process exits before scanning."""
    pass


@dataclass(frozen=True)
class BotConfig:
    rpc_url: str
    program_id: Pubkey
    keypair: Keypair
    poll_interval_seconds: int = DEFAULT_POLL_INTERVAL_SECONDS
    drift_buffer_seconds: int = DEFAULT_DRIFT_BUFFER_SECONDS
    submit_delay_seconds: float = DEFAULT_SUBMIT_DELAY_SECONDS
    low_balance_lamports: int = int(DEFAULT_LOW_BALANCE_SOL * LAMPORTS_PER_SOL)
    pinata_jwt: str = ""
    host: str = "0.0.0.0"
    port: int = 8000


def _number(env: Mapping[str, str], key: str, default, cast, positive: bool = False):
    raw = env.get(key, "")
    if raw == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}")
    if positive and value <= 0:
        raise ConfigError(f"{key} must be greater than zero, got {raw!r}")
    if value < 0:
        raise ConfigError(f"{key} must not be negative, got {raw!r}")
    return value


def load_config(env: Optional[Mapping[str, str]] = None) -> BotConfig:
    """Build BotConfig from env (defaults to os.environ). Raises ConfigError."""
    if env is None:
        env = os.environ

    secret = env.get("BOT_KEYPAIR", "").strip()
    if not secret:
        raise ConfigError(
            "BOT_KEYPAIR env var not set. Add the bot wallet private key (base58)."
        )
    try:
        keypair = Keypair.from_bytes(base58.b58decode(secret))
    except (ValueError, TypeError):
        # never echo the secret back
        raise ConfigError("BOT_KEYPAIR is not a valid base58-encoded 64-byte secret key")

    program_raw = env.get("PROGRAM_ID", "") or DEFAULT_PROGRAM_ID
    try:
        program_id = Pubkey.from_string(program_raw)
    except Exception:
        raise ConfigError(f"PROGRAM_ID is not a valid public key: {program_raw!r}")

    low_balance_sol = _number(env, "LOW_BALANCE_SOL", DEFAULT_LOW_BALANCE_SOL, float)

    return BotConfig(
        rpc_url=env.get("RPC_URL", "") or DEFAULT_RPC_URL,
        program_id=program_id,
        keypair=keypair,
        poll_interval_seconds=_number(env, "POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS, int, positive=True),
        drift_buffer_seconds=_number(env, "DRIFT_BUFFER_SECONDS", DEFAULT_DRIFT_BUFFER_SECONDS, int),
        submit_delay_seconds=_number(env, "SUBMIT_DELAY_SECONDS", DEFAULT_SUBMIT_DELAY_SECONDS, float),
        low_balance_lamports=int(low_balance_sol * LAMPORTS_PER_SOL),
        pinata_jwt=env.get("PINATA_JWT", ""),
        host=env.get("HOST", "") or "0.0.0.0",
        port=_number(env, "PORT", 8000, int, positive=True),
    )
