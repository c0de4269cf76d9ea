from solders.keypair import Keypair
from solders.pubkey import Pubkey

from conftest import PROGRAM_ID, make_record
from core.addresses import (
    check_record_address,
    derive_ghost_address,
    derive_vault_address,
    find_ghost_address,
)


def test_derivation_is_deterministic():
    owner = Keypair().pubkey()
    ghost = derive_ghost_address(owner, PROGRAM_ID)
    assert all(derive_ghost_address(owner, PROGRAM_ID) == ghost for _ in range(5))
    vault = derive_vault_address(ghost, PROGRAM_ID)
    assert all(derive_vault_address(ghost, PROGRAM_ID) == vault for _ in range(5))


def test_matches_solders_find_program_address():
    owner = Keypair().pubkey()
    expected, _ = Pubkey.find_program_address([b"ghost", bytes(owner)], PROGRAM_ID)
    ghost = derive_ghost_address(owner, PROGRAM_ID)
    assert ghost == expected
    expected_vault, _ = Pubkey.find_program_address([b"vault", bytes(ghost)], PROGRAM_ID)
    assert derive_vault_address(ghost, PROGRAM_ID) == expected_vault


def test_distinct_inputs_give_distinct_addresses():
    a, b = Keypair().pubkey(), Keypair().pubkey()
    assert derive_ghost_address(a, PROGRAM_ID) != derive_ghost_address(b, PROGRAM_ID)
    ghost = derive_ghost_address(a, PROGRAM_ID)
    assert derive_vault_address(ghost, PROGRAM_ID) != ghost
    other_program = Keypair().pubkey()
    assert derive_ghost_address(a, other_program) != ghost


def test_check_record_address_ok():
    assert check_record_address(make_record(), PROGRAM_ID) is None


def test_check_record_address_wrong_account():
    rec = make_record(address=Keypair().pubkey())
    assert "is not the ghost PDA" in check_record_address(rec, PROGRAM_ID)


def test_check_record_address_ignores_stored_bump():
    owner = Keypair().pubkey()
    _, bump = find_ghost_address(owner, PROGRAM_ID)
    rec = make_record(owner=owner, bump=(bump - 1) % 256)
    assert check_record_address(rec, PROGRAM_ID) is None
