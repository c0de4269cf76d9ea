"""
Account scanner: every program-owned account of ghost size.

The dataSize filter keeps vault token accounts and anything else the
program owns out of the result. Order is whatever the node returns.
"""

import logging
from dataclasses import dataclass, field

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solders.pubkey import Pubkey

from .protocol import GHOST_ACCOUNT_SIZE

logger = logging.getLogger("ghost.scanner")


@dataclass
class ScannedAccount:
    address: Pubkey
    data: bytes


@dataclass
class ScanResult:
    success: bool
    accounts: list[ScannedAccount] = field(default_factory=list)
    error: str = ""


class AccountScanner:
    def __init__(self, client: AsyncClient, program_id: Pubkey, account_size: int = GHOST_ACCOUNT_SIZE):
        self._client = client
        self._program_id = program_id
        self._account_size = account_size

    async def scan(self) -> ScanResult:
        """Fetch raw ghost accounts. Transport failure -> ScanResult(success=False)."""
        try:
            resp = await self._client.get_program_accounts(
                self._program_id,
                commitment=Confirmed,
                encoding="base64",
                filters=[self._account_size],
            )
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            logger.error(f"RPC error fetching accounts: {error}")
            return ScanResult(success=False, error=error)

        accounts = [
            ScannedAccount(address=keyed.pubkey, data=bytes(keyed.account.data))
            for keyed in resp.value
        ]
        logger.info(f"Found {len(accounts)} ghost account(s)")
        return ScanResult(success=True, accounts=accounts)
