import os
import sys
import asyncio
from types import SimpleNamespace

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

# Ensure the project root is importable without an install
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.addresses import find_ghost_address
from core.chain import ChainTxResult
from core.record import GhostRecord

DAY = 24 * 60 * 60
NOW = 1_760_000_000
PROGRAM_ID = Pubkey.from_string("69CthivgcVfvMbEJLtUcpbnztNzJ26VCfjAwMj5jdMnZ")


def run(coro):
    return asyncio.run(coro)


def make_record(owner=None, **overrides) -> GhostRecord:
    """A healthy dormant ghost whose address/bump match the real PDA."""
    owner = owner or Keypair().pubkey()
    address, bump = find_ghost_address(owner, PROGRAM_ID)
    fields = dict(
        address=address,
        owner=owner,
        recovery_wallet=None,
        last_heartbeat=NOW - 3600,
        interval_seconds=7 * DAY,
        grace_period_seconds=3 * DAY,
        awakened=False,
        awakened_at=None,
        executed=False,
        executed_at=None,
        staked_amount=10_000 * 1_000_000,
        bump=bump,
        vault_bump=254,
        registered_at=NOW - 30 * DAY,
        ping_count=4,
        beneficiary_count=2,
    )
    fields.update(overrides)
    return GhostRecord(**fields)


# ============================================================
# FAKE RPC
# ============================================================

class FakeRpcClient:
    """Stands in for solana.rpc.async_api.AsyncClient."""

    def __init__(self, accounts=None, balance=1_000_000_000):
        self.accounts = accounts or []      # [(Pubkey, bytes)]
        self.balance = balance
        self.scan_error = None
        self.send_errors = {}               # call number (1-based) -> exception
        self.confirm_err = None
        self.sent = []                      # raw tx bytes, in order
        self.scan_kwargs = None
        self.closed = False

    async def get_program_accounts(self, program_id, **kwargs):
        self.scan_kwargs = dict(kwargs, program_id=program_id)
        if self.scan_error:
            raise self.scan_error
        return SimpleNamespace(value=[
            SimpleNamespace(pubkey=address, account=SimpleNamespace(data=data))
            for address, data in self.accounts
        ])

    async def get_latest_blockhash(self, commitment=None):
        return SimpleNamespace(value=SimpleNamespace(blockhash=Hash.default(), last_valid_block_height=1000))

    async def send_raw_transaction(self, txn, opts=None):
        self.sent.append(txn)
        error = self.send_errors.get(len(self.sent))
        if error:
            raise error
        return SimpleNamespace(value=Signature(bytes([len(self.sent)]) * 64))

    async def confirm_transaction(self, sig, commitment=None, sleep_seconds=0.5, last_valid_block_height=None):
        return SimpleNamespace(value=[SimpleNamespace(err=self.confirm_err)])

    async def get_balance(self, pubkey, commitment=None):
        return SimpleNamespace(value=self.balance)

    async def close(self):
        self.closed = True


class FakeExecutor:
    """Records submissions; fails the ones listed in fail_on (1-based)."""

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.calls = []

    async def get_fee_balance(self):
        return 1_000_000_000

    async def submit(self, record, action):
        self.calls.append((record.address, action))
        if len(self.calls) in self.fail_on:
            return ChainTxResult(success=False, action=str(action), error_kind="rejected", error="boom")
        return ChainTxResult(success=True, action=str(action), signature=f"sig{len(self.calls)}")

    def get_status(self):
        return {"tx_count": len(self.calls)}


class FakeSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def rpc():
    return FakeRpcClient()


@pytest.fixture
def bot():
    return Keypair()
