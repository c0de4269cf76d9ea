"""
Program-derived addresses for ghost accounts and their vaults.

Pure functions, no RPC. Same inputs always give the same address:
    ghost = PDA(["ghost", owner], program_id)
    vault = PDA(["vault", ghost], program_id)
"""

from typing import Optional

from solders.pubkey import Pubkey

from .protocol import GHOST_SEED, VAULT_SEED
from .record import GhostRecord


def find_ghost_address(owner: Pubkey, program_id: Pubkey) -> tuple[Pubkey, int]:
    """Ghost PDA and its canonical bump."""
    return Pubkey.find_program_address([GHOST_SEED, bytes(owner)], program_id)


def find_vault_address(ghost_address: Pubkey, program_id: Pubkey) -> tuple[Pubkey, int]:
    """Vault PDA and its canonical bump."""
    return Pubkey.find_program_address([VAULT_SEED, bytes(ghost_address)], program_id)


def derive_ghost_address(owner: Pubkey, program_id: Pubkey) -> Pubkey:
    return find_ghost_address(owner, program_id)[0]


def derive_vault_address(ghost_address: Pubkey, program_id: Pubkey) -> Pubkey:
    return find_vault_address(ghost_address, program_id)[0]


def check_record_address(record: GhostRecord, program_id: Pubkey) -> Optional[str]:
    """
    Cross-check a scanned record against its derivation.

    Returns a human-readable mismatch description, or None when the account
    address is what the owner derives to. The stored bump is carried through
    and never compared.
    """
    ghost = derive_ghost_address(record.owner, program_id)
    if ghost != record.address:
        return f"account {record.address} is not the ghost PDA of owner {record.owner} (expected {ghost})"
    return None
