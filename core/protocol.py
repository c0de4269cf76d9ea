"""
GHOST Protocol - On-Chain Constants

Everything the executor needs to know about the deployed program:
seeds, instruction tags, account size, and the operational defaults
the watcher runs with when the environment does not override them.

These values mirror the deployed program. Changing them here does not
change the program; it only breaks the executor.

Designed for: GHOST protocol executor
"""

import hashlib
from typing import Final

from solders.pubkey import Pubkey
from spl.token.constants import TOKEN_PROGRAM_ID


# ============================================================
# PROGRAM
# ============================================================

DEFAULT_RPC_URL: Final[str] = "https://api.mainnet-beta.solana.com"
DEFAULT_PROGRAM_ID: Final[str] = "69CthivgcVfvMbEJLtUcpbnztNzJ26VCfjAwMj5jdMnZ"

# SPL token program, passed read-only to execute_transfer
TOKEN_PROGRAM: Final[Pubkey] = TOKEN_PROGRAM_ID


# ============================================================
# PDA SEEDS
# ============================================================

GHOST_SEED: Final[bytes] = b"ghost"
VAULT_SEED: Final[bytes] = b"vault"


# ============================================================
# INSTRUCTION TAGS (anchor discriminators, sha256("global:<name>")[:8])
# ============================================================

AWAKEN_TAG: Final[bytes] = bytes([184, 91, 42, 182, 145, 78, 199, 65])
EXECUTE_TAG: Final[bytes] = bytes([233, 126, 160, 184, 235, 206, 31, 119])

# Account discriminator written by the program; the decoder skips it.
GHOST_ACCOUNT_TAG: Final[bytes] = hashlib.sha256(b"account:GhostAccount").digest()[:8]
TAG_SIZE: Final[int] = 8

# Ghost accounts are selected by this exact size (dataSize filter).
GHOST_ACCOUNT_SIZE: Final[int] = 153

# Decoded fields end at byte 144: disc(8) + owner(32) + recovery(33)
# + 3 * i64(24) + awakened(1) + awakened_at(9) + executed(1) + executed_at(9)
# + staked(8) + bumps(2) + registered_at(8) + ping_count(8) + beneficiary_count(1).
# The remaining bytes are not read.
GHOST_RESERVED_TAIL: Final[int] = 9


# ============================================================
# OPERATIONAL DEFAULTS
# ============================================================

DEFAULT_POLL_INTERVAL_SECONDS: Final[int] = 5 * 60
DEFAULT_DRIFT_BUFFER_SECONDS: Final[int] = 60
DEFAULT_SUBMIT_DELAY_SECONDS: Final[float] = 1.5
DEFAULT_LOW_BALANCE_SOL: Final[float] = 0.01

LAMPORTS_PER_SOL: Final[int] = 1_000_000_000
