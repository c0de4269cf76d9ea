from solana.rpc.core import RPCException, UnconfirmedTxError
from solders.transaction import Transaction

from conftest import PROGRAM_ID, make_record, run
from core.addresses import derive_ghost_address, derive_vault_address
from core.chain import (
    ChainExecutor,
    TxErrorKind,
    build_awaken_instruction,
    build_execute_instruction,
)
from core.lifecycle import ActionKind, PendingAction
from core.protocol import AWAKEN_TAG, EXECUTE_TAG, TOKEN_PROGRAM


def _metas(ix):
    return [(m.pubkey, m.is_signer, m.is_writable) for m in ix.accounts]


def test_awaken_instruction_layout(bot):
    rec = make_record()
    ix = build_awaken_instruction(rec, PROGRAM_ID, bot.pubkey())
    assert ix.program_id == PROGRAM_ID
    assert bytes(ix.data) == AWAKEN_TAG
    assert _metas(ix) == [
        (derive_ghost_address(rec.owner, PROGRAM_ID), False, True),
        (bot.pubkey(), True, True),
    ]


def test_execute_instruction_layout(bot):
    rec = make_record()
    ix = build_execute_instruction(rec, 7, PROGRAM_ID, bot.pubkey())
    ghost = derive_ghost_address(rec.owner, PROGRAM_ID)
    assert bytes(ix.data) == EXECUTE_TAG + bytes([7])
    assert _metas(ix) == [
        (ghost, False, True),
        (derive_vault_address(ghost, PROGRAM_ID), False, True),
        (TOKEN_PROGRAM, False, False),
        (bot.pubkey(), True, True),
    ]


def test_submit_awaken_signs_and_sends(rpc, bot):
    executor = ChainExecutor(rpc, bot, PROGRAM_ID)
    result = run(executor.submit_awaken(make_record(last_heartbeat=0)))

    assert result.success
    assert result.action == "awaken"
    assert result.signature
    assert len(rpc.sent) == 1

    tx = Transaction.from_bytes(rpc.sent[0])
    assert tx.message.account_keys[0] == bot.pubkey()   # fee payer first
    assert bytes(tx.message.instructions[0].data) == AWAKEN_TAG
    assert executor.get_status()["tx_count"] == 1


def test_submit_execute_carries_index(rpc, bot):
    executor = ChainExecutor(rpc, bot, PROGRAM_ID)
    action = PendingAction(ActionKind.EXECUTE, beneficiary_index=1)
    result = run(executor.submit(make_record(), action))

    assert result.success
    assert result.action == "execute[1]"
    tx = Transaction.from_bytes(rpc.sent[0])
    assert bytes(tx.message.instructions[0].data) == EXECUTE_TAG + b"\x01"


def test_rejection_is_a_result_not_an_exception(rpc, bot):
    rpc.send_errors[1] = RPCException("Transaction simulation failed: GhostAlreadyAwakened")
    executor = ChainExecutor(rpc, bot, PROGRAM_ID)
    result = run(executor.submit_awaken(make_record()))
    assert not result.success
    assert result.error_kind == TxErrorKind.REJECTED
    assert "GhostAlreadyAwakened" in result.error
    assert executor.get_status()["tx_failed"] == 1


def test_transport_and_unconfirmed_errors(rpc, bot):
    rpc.send_errors[1] = ConnectionError("connection reset")
    rpc.send_errors[2] = UnconfirmedTxError("not confirmed in time")
    executor = ChainExecutor(rpc, bot, PROGRAM_ID)
    first = run(executor.submit_awaken(make_record()))
    second = run(executor.submit_awaken(make_record()))
    assert first.error_kind == TxErrorKind.TRANSPORT
    assert second.error_kind == TxErrorKind.UNCONFIRMED


def test_confirmed_with_program_error(rpc, bot):
    rpc.confirm_err = "InstructionError(0, Custom(6003))"
    executor = ChainExecutor(rpc, bot, PROGRAM_ID)
    result = run(executor.submit_awaken(make_record()))
    assert not result.success
    assert result.error_kind == TxErrorKind.REJECTED
    assert result.signature  # sent, then failed on-chain


def test_out_of_range_index_is_invalid(rpc, bot):
    executor = ChainExecutor(rpc, bot, PROGRAM_ID)
    result = run(executor.submit_execute(make_record(), 256))
    assert not result.success
    assert result.error_kind == TxErrorKind.INVALID
    assert rpc.sent == []


def test_fee_balance(rpc, bot):
    rpc.balance = 5_000_000
    executor = ChainExecutor(rpc, bot, PROGRAM_ID, low_balance_lamports=10_000_000)
    assert run(executor.get_fee_balance()) == 5_000_000
    assert executor.get_status()["balance_sol"] == 0.005
