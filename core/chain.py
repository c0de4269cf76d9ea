"""
Chain Executor - On-Chain Transaction Layer

Turns a PendingAction from the lifecycle evaluator into a signed Solana
transaction and submits it.

Design:
- One instruction per transaction, bot keypair is both signer and fee payer
- Fresh blockhash per submission, confirmation awaited at "confirmed"
- Non-fatal: every failure comes back as a ChainTxResult, never an exception.
  The scheduler keeps going with the next beneficiary / next ghost and the
  poll interval is the retry.
- No local state about ghosts: success is only observed on the next scan

Trust boundary: the program rejects double awaken / double execute. This
module does not try to re-verify that before submitting.

Designed for: GHOST protocol executor
"""

import logging
from dataclasses import dataclass
from typing import Optional

from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.core import (
    RPCException,
    TransactionExpiredBlockheightExceededError,
    UnconfirmedTxError,
)
from solana.rpc.types import TxOpts
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from .addresses import derive_ghost_address, derive_vault_address
from .lifecycle import ActionKind, PendingAction
from .protocol import AWAKEN_TAG, EXECUTE_TAG, LAMPORTS_PER_SOL, TOKEN_PROGRAM
from .record import GhostRecord

logger = logging.getLogger("ghost.chain")


# ============================================================
# RESULT TYPE
# ============================================================

class TxErrorKind:
    TRANSPORT = "transport"      # RPC unreachable / HTTP failure
    REJECTED = "rejected"        # node or program refused (preflight, balance, program error)
    UNCONFIRMED = "unconfirmed"  # sent, but not confirmed before blockhash expiry
    INVALID = "invalid"          # could not even build the instruction


@dataclass
class ChainTxResult:
    """Result of an on-chain transaction attempt."""
    success: bool
    action: str = ""
    ghost: str = ""
    signature: str = ""
    error_kind: str = ""
    error: str = ""


# ============================================================
# INSTRUCTION BUILDERS
# ============================================================

def build_awaken_instruction(record: GhostRecord, program_id: Pubkey, caller: Pubkey) -> Instruction:
    ghost = derive_ghost_address(record.owner, program_id)
    return Instruction(
        program_id,
        AWAKEN_TAG,
        [
            AccountMeta(ghost, is_signer=False, is_writable=True),
            AccountMeta(caller, is_signer=True, is_writable=True),  # pays fee
        ],
    )


def build_execute_instruction(
    record: GhostRecord, beneficiary_index: int, program_id: Pubkey, caller: Pubkey
) -> Instruction:
    if not 0 <= beneficiary_index < 256:
        raise ValueError(f"beneficiary index {beneficiary_index} does not fit in u8")
    ghost = derive_ghost_address(record.owner, program_id)
    vault = derive_vault_address(ghost, program_id)
    return Instruction(
        program_id,
        EXECUTE_TAG + bytes([beneficiary_index]),
        [
            AccountMeta(ghost, is_signer=False, is_writable=True),
            AccountMeta(vault, is_signer=False, is_writable=True),
            AccountMeta(TOKEN_PROGRAM, is_signer=False, is_writable=False),
            AccountMeta(caller, is_signer=True, is_writable=True),  # pays fee
        ],
    )


# ============================================================
# CHAIN EXECUTOR
# ============================================================

class ChainExecutor:
    """
    Signs and submits ghost instructions with the bot keypair.

    Usage:
        executor = ChainExecutor(AsyncClient(rpc_url), keypair, program_id)
        result = await executor.submit_awaken(record)
        if not result.success:
            ...  # logged already; next scan will re-evaluate
    """

    def __init__(
        self,
        client: AsyncClient,
        keypair: Keypair,
        program_id: Pubkey,
        low_balance_lamports: int = LAMPORTS_PER_SOL // 100,
    ):
        self._client = client
        self._keypair = keypair
        self._program_id = program_id
        self._low_balance_lamports = low_balance_lamports

        self._tx_count: int = 0
        self._tx_failed: int = 0
        self._last_error: str = ""
        self._last_balance: Optional[int] = None

    @property
    def caller(self) -> Pubkey:
        return self._keypair.pubkey()

    async def _send_tx(self, instruction: Instruction, action: str, record: GhostRecord) -> ChainTxResult:
        """
        Build, sign, send and confirm a single-instruction transaction.

        Returns ChainTxResult with signature on success, error on failure.
        """
        ghost = str(record.address)
        signature = ""
        try:
            latest = await self._client.get_latest_blockhash(commitment=Confirmed)
            blockhash = latest.value.blockhash

            tx = Transaction.new_signed_with_payer(
                [instruction], self.caller, [self._keypair], blockhash
            )
            sent = await self._client.send_raw_transaction(
                bytes(tx), opts=TxOpts(preflight_commitment=Confirmed)
            )
            sig = sent.value
            signature = str(sig)

            confirmed = await self._client.confirm_transaction(
                sig,
                commitment=Confirmed,
                last_valid_block_height=latest.value.last_valid_block_height,
            )
            status = confirmed.value[0] if confirmed.value else None
            if status is not None and status.err is not None:
                return self._failed(action, ghost, TxErrorKind.REJECTED, f"program error: {status.err}", signature)

        except RPCException as e:
            return self._failed(action, ghost, TxErrorKind.REJECTED, f"RPCException: {e}", signature)
        except (UnconfirmedTxError, TransactionExpiredBlockheightExceededError) as e:
            return self._failed(action, ghost, TxErrorKind.UNCONFIRMED, f"{type(e).__name__}: {e}", signature)
        except SolanaRpcException as e:
            return self._failed(action, ghost, TxErrorKind.TRANSPORT, e.error_msg, signature)
        except Exception as e:
            return self._failed(action, ghost, TxErrorKind.TRANSPORT, f"{type(e).__name__}: {e}", signature)

        self._tx_count += 1
        logger.info(f"TX OK [{action}] ghost={ghost[:8]}... sig={signature}")
        return ChainTxResult(success=True, action=action, ghost=ghost, signature=signature)

    def _failed(self, action: str, ghost: str, kind: str, error: str, signature: str = "") -> ChainTxResult:
        self._tx_failed += 1
        self._last_error = f"{action}: {error}"
        logger.warning(f"TX FAILED [{action}] ghost={ghost[:8]}... ({kind}) {error}")
        return ChainTxResult(
            success=False,
            action=action,
            ghost=ghost,
            signature=signature,
            error_kind=kind,
            error=error,
        )

    # ============================================================
    # PUBLIC METHODS: called by the scheduler per pending action
    # ============================================================

    async def submit_awaken(self, record: GhostRecord) -> ChainTxResult:
        """Submit awaken_ghost for a ghost whose heartbeat lapsed."""
        ix = build_awaken_instruction(record, self._program_id, self.caller)
        return await self._send_tx(ix, "awaken", record)

    async def submit_execute(self, record: GhostRecord, beneficiary_index: int) -> ChainTxResult:
        """Submit execute_transfer for one beneficiary of an expired ghost."""
        action = f"execute[{beneficiary_index}]"
        try:
            ix = build_execute_instruction(record, beneficiary_index, self._program_id, self.caller)
        except ValueError as e:
            return self._failed(action, str(record.address), TxErrorKind.INVALID, str(e))
        return await self._send_tx(ix, action, record)

    async def submit(self, record: GhostRecord, action: PendingAction) -> ChainTxResult:
        if action.kind is ActionKind.AWAKEN:
            return await self.submit_awaken(record)
        return await self.submit_execute(record, action.beneficiary_index)

    # ============================================================
    # FEE PAYER
    # ============================================================

    async def get_fee_balance(self) -> Optional[int]:
        """
        Bot wallet balance in lamports, or None if the RPC call failed.
        Warns when the balance is too low to keep paying fees.
        """
        try:
            resp = await self._client.get_balance(self.caller, commitment=Confirmed)
        except Exception as e:
            logger.warning(f"Could not fetch bot balance: {e}")
            return None

        balance = resp.value
        self._last_balance = balance
        sol = balance / LAMPORTS_PER_SOL
        if balance < self._low_balance_lamports:
            logger.warning(
                f"Low balance: {sol:.4f} SOL — top up {self.caller} or submissions will fail"
            )
        else:
            logger.info(f"Bot wallet balance: {sol:.4f} SOL")
        return balance

    # ============================================================
    # STATUS
    # ============================================================

    def get_status(self) -> dict:
        """Status for the /status endpoint."""
        return {
            "bot_address": str(self.caller),
            "program_id": str(self._program_id),
            "tx_count": self._tx_count,
            "tx_failed": self._tx_failed,
            "last_error": self._last_error,
            "balance_sol": (
                self._last_balance / LAMPORTS_PER_SOL
                if self._last_balance is not None else None
            ),
        }
