"""
Scan Scheduler - The Watch Loop

Runs one scan cycle immediately, then one every poll interval:

    scan -> for each account (node order):
                decode -> cross-check PDA -> evaluate -> submit actions in order

Error isolation:
- scan failure        -> cycle abandoned, next tick proceeds normally
- decode failure      -> that account skipped
- submission failure  -> that action skipped, later beneficiaries/ghosts still tried

Everything is sequential on a single task. The only pauses are RPC awaits,
the fixed pacing delay between consecutive submissions, and the interval
sleep. Cycles never overlap.

Designed for: GHOST protocol executor
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from solders.pubkey import Pubkey

from .addresses import check_record_address
from .chain import ChainExecutor
from .lifecycle import LifecycleState, classify, evaluate, grace_deadline, seconds_until_due
from .protocol import (
    DEFAULT_DRIFT_BUFFER_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_SUBMIT_DELAY_SECONDS,
)
from .record import GhostRecord, RecordDecodeError, decode_record
from .scanner import AccountScanner, ScannedAccount

logger = logging.getLogger("ghost.scheduler")


@dataclass
class CycleReport:
    """Outcome counters for one scan cycle."""
    started_at: float = 0.0
    finished_at: float = 0.0
    scan_error: str = ""
    accounts_found: int = 0
    decoded: int = 0
    decode_failures: int = 0
    address_mismatches: int = 0
    healthy: int = 0
    terminal: int = 0
    actions_proposed: int = 0
    submitted_ok: int = 0
    submitted_failed: int = 0

    @property
    def submissions(self) -> int:
        return self.submitted_ok + self.submitted_failed

    def to_dict(self) -> dict:
        return asdict(self)


class ScanScheduler:
    """
    Drives scanner -> decoder -> evaluator -> executor on a fixed interval.

    Usage:
        scheduler = ScanScheduler(scanner, executor, program_id)
        await scheduler.run_forever()      # or: await scheduler.run_cycle()
    """

    def __init__(
        self,
        scanner: AccountScanner,
        executor: ChainExecutor,
        program_id: Pubkey,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        drift_buffer: int = DEFAULT_DRIFT_BUFFER_SECONDS,
        submit_delay: float = DEFAULT_SUBMIT_DELAY_SECONDS,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._scanner = scanner
        self._executor = executor
        self._program_id = program_id
        self.poll_interval = poll_interval
        self.drift_buffer = drift_buffer
        self.submit_delay = submit_delay
        self._clock = clock
        self._sleep = sleep

        self._running_cycle: bool = False
        self._stopped: bool = False
        self._cycles_run: int = 0
        self._last_report: Optional[CycleReport] = None

    # ============================================================
    # LOOP
    # ============================================================

    async def run_forever(self) -> None:
        """Cycle now, then every poll_interval until stop()."""
        logger.info(f"Watch loop started (interval: {self.poll_interval}s, drift buffer: {self.drift_buffer}s)")
        while not self._stopped:
            try:
                await self.run_cycle()
            except Exception as e:
                logger.exception(f"Scan cycle crashed: {e}")
            if self._stopped:
                break
            await self._sleep(self.poll_interval)
        logger.info("Watch loop stopped")

    def stop(self) -> None:
        self._stopped = True

    async def run_cycle(self) -> Optional[CycleReport]:
        """
        Run one full scan cycle. Returns None if a cycle is already running.
        """
        if self._running_cycle:
            logger.warning("Previous scan cycle still running — skipping this tick")
            return None
        self._running_cycle = True
        try:
            return await self._cycle()
        finally:
            self._running_cycle = False

    async def _cycle(self) -> CycleReport:
        report = CycleReport(started_at=self._clock())
        now = int(report.started_at)
        stamp = datetime.fromtimestamp(now, tz=timezone.utc).isoformat()
        logger.info(f"Scanning ghost accounts... [{stamp}]")

        await self._executor.get_fee_balance()

        scan = await self._scanner.scan()
        if not scan.success:
            report.scan_error = scan.error
            logger.error(f"Scan abandoned: {scan.error}")
            return self._finish(report)

        report.accounts_found = len(scan.accounts)
        for account in scan.accounts:
            try:
                await self._process_account(account, now, report)
            except Exception as e:
                logger.exception(f"Unexpected error processing {account.address}: {e}")

        return self._finish(report)

    def _finish(self, report: CycleReport) -> CycleReport:
        report.finished_at = self._clock()
        self._cycles_run += 1
        self._last_report = report
        logger.info(
            f"Scan complete: {report.decoded}/{report.accounts_found} decoded, "
            f"{report.actions_proposed} action(s), "
            f"{report.submitted_ok} ok / {report.submitted_failed} failed"
        )
        return report

    # ============================================================
    # PER RECORD
    # ============================================================

    async def _process_account(self, account: ScannedAccount, now: int, report: CycleReport) -> None:
        try:
            record = decode_record(account.address, account.data)
        except RecordDecodeError as e:
            report.decode_failures += 1
            logger.warning(f"Failed to parse account {account.address}: {e.reason}")
            return
        report.decoded += 1

        mismatch = check_record_address(record, self._program_id)
        if mismatch:
            report.address_mismatches += 1
            logger.warning(f"Skipping account: {mismatch}")
            return

        actions = evaluate(record, now, self.drift_buffer)
        if not actions:
            self._log_idle(record, now, report)
            return

        report.actions_proposed += len(actions)
        first = actions[0]
        if classify(record) is LifecycleState.DORMANT:
            logger.warning(
                f"Ghost {record.short_owner} overdue by {round(first.overdue_seconds / 3600)}h — awakening"
            )
        else:
            logger.warning(
                f"Ghost {record.short_owner} grace expired {round(first.overdue_seconds / 60)}m ago — "
                f"executing {record.beneficiary_count} transfer(s)"
            )

        for action in actions:
            if report.submissions > 0 and self.submit_delay > 0:
                await self._sleep(self.submit_delay)
            result = await self._executor.submit(record, action)
            if result.success:
                report.submitted_ok += 1
                if action.beneficiary_index is not None:
                    logger.info(
                        f"Beneficiary {action.beneficiary_index + 1}/{record.beneficiary_count} — "
                        f"Tx: {result.signature}"
                    )
            else:
                report.submitted_failed += 1
                logger.error(f"{action} failed for {record.short_owner}: {result.error}")

    def _log_idle(self, record: GhostRecord, now: int, report: CycleReport) -> None:
        state = classify(record)
        if state is LifecycleState.TERMINAL:
            report.terminal += 1
            logger.debug(f"{record.short_owner} already executed")
            return

        remaining = seconds_until_due(record, now)
        if state is LifecycleState.DORMANT:
            report.healthy += 1
            if remaining > 0:
                logger.info(f"{record.short_owner} healthy — next ping due in ~{round(remaining / 86400)} day(s)")
            else:
                logger.info(f"{record.short_owner} heartbeat lapsed {-remaining}s ago, inside drift buffer")
            return

        if grace_deadline(record) is None:
            logger.warning(f"{record.short_owner} awakened without awakened_at — nothing to do")
        elif remaining is not None and remaining > 0:
            logger.info(f"{record.short_owner} awakened — grace period ends in ~{round(remaining / 3600)}h")
        elif record.beneficiary_count == 0:
            logger.info(f"{record.short_owner} grace expired but no beneficiaries registered")
        else:
            logger.info(f"{record.short_owner} grace lapsed {-remaining}s ago, inside drift buffer")

    # ============================================================
    # STATUS
    # ============================================================

    def get_status(self) -> dict:
        return {
            "cycles_run": self._cycles_run,
            "running_cycle": self._running_cycle,
            "stopped": self._stopped,
            "poll_interval_seconds": self.poll_interval,
            "drift_buffer_seconds": self.drift_buffer,
            "last_cycle": self._last_report.to_dict() if self._last_report else None,
        }
