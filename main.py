"""
GHOST executor - main entry point

Watches every ghost account on-chain. When a heartbeat lapses it submits
awaken_ghost; when an awakened ghost's grace period expires it submits
execute_transfer once per beneficiary.

Usage:
    python main.py              # watch loop + HTTP surface (status, upload relay)
    python main.py --no-api     # watch loop only
    python main.py --once       # one scan cycle, then exit
"""

import os
import sys
import asyncio
import logging
import argparse
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from dotenv import load_dotenv
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed

# ============================================================
# BOOTSTRAP
# ============================================================

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
_level = getattr(logging, LOG_LEVEL, None)
logging.basicConfig(
    level=_level if isinstance(_level, int) else logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


class _SecretMaskingFilter(logging.Filter):
    """Redact registered secrets (bot key, Pinata JWT) from all log output."""

    def __init__(self):
        super().__init__()
        self._secrets: set[str] = set()

    def add_secret(self, secret: str) -> None:
        if secret:
            self._secrets.add(secret)

    def _mask(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, "[REDACTED]")
        return text

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not self._secrets:
            return True
        try:
            formatted = record.getMessage()
        except Exception:
            return True
        masked = self._mask(formatted)
        if masked != formatted:
            record.msg = masked
            record.args = None
        return True


_mask_filter = _SecretMaskingFilter()
for _h in logging.root.handlers:
    _h.addFilter(_mask_filter)

logger = logging.getLogger("ghost.main")


# ============================================================
# MODULE IMPORTS
# ============================================================

from core.config import BotConfig, ConfigError, load_config
from core.chain import ChainExecutor
from core.scanner import AccountScanner
from core.scheduler import ScanScheduler
from core.pinning import PinataClient
from api.server import create_app


# ============================================================
# WIRING
# ============================================================

def build_components(config: BotConfig) -> tuple[AsyncClient, ChainExecutor, ScanScheduler]:
    """One RPC client and one keypair, handed explicitly to every component."""
    client = AsyncClient(config.rpc_url, commitment=Confirmed)
    executor = ChainExecutor(
        client,
        config.keypair,
        config.program_id,
        low_balance_lamports=config.low_balance_lamports,
    )
    scanner = AccountScanner(client, config.program_id)
    scheduler = ScanScheduler(
        scanner,
        executor,
        config.program_id,
        poll_interval=config.poll_interval_seconds,
        drift_buffer=config.drift_buffer_seconds,
        submit_delay=config.submit_delay_seconds,
    )
    return client, executor, scheduler


def _log_banner(config: BotConfig) -> None:
    logger.info("GHOST executor starting...")
    logger.info(f"   Program:    {config.program_id}")
    logger.info(f"   Bot wallet: {config.keypair.pubkey()}")
    logger.info(f"   RPC:        {config.rpc_url}")
    logger.info(f"   Polling every {config.poll_interval_seconds / 60:g} minutes")


async def run_watcher(config: BotConfig, once: bool = False) -> None:
    """Watch loop without the HTTP surface."""
    client, _executor, scheduler = build_components(config)
    try:
        if once:
            await scheduler.run_cycle()
        else:
            await scheduler.run_forever()
    finally:
        await client.close()


def create_executor_app(config: BotConfig):
    """FastAPI app with the watch loop running as a background task."""
    client, executor, scheduler = build_components(config)

    @asynccontextmanager
    async def lifespan(app):
        watch_task = asyncio.create_task(scheduler.run_forever(), name="ghost_watch")
        logger.info("Watch loop scheduled. Accepting requests.")

        yield

        logger.info("Shutting down watch loop...")
        scheduler.stop()
        watch_task.cancel()
        try:
            await watch_task
        except asyncio.CancelledError:
            pass
        await client.close()
        logger.info("Goodbye.")

    return create_app(
        scheduler=scheduler,
        executor=executor,
        pinning_client=PinataClient(config.pinata_jwt),
        lifespan=lifespan,
    )


# ============================================================
# ENTRY POINT
# ============================================================

def _uvicorn_log_level(level: int) -> str:
    """Canonical level name as uvicorn expects it (WARN -> "warning")."""
    return logging.getLevelName(level).lower()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="GHOST protocol executor bot")
    parser.add_argument("--once", action="store_true", help="run a single scan cycle and exit")
    parser.add_argument("--no-api", action="store_true", help="run the watch loop without the HTTP server")
    args = parser.parse_args(argv)

    _mask_filter.add_secret(os.getenv("BOT_KEYPAIR", "").strip())
    _mask_filter.add_secret(os.getenv("PINATA_JWT", ""))

    try:
        config = load_config()
    except ConfigError as e:
        logger.error(f"Fatal configuration error: {e}")
        return 1

    _log_banner(config)

    if args.once or args.no_api:
        try:
            asyncio.run(run_watcher(config, once=args.once))
        except KeyboardInterrupt:
            logger.info("Interrupted.")
        return 0

    logger.info(f"Starting server on {config.host}:{config.port}")
    uvicorn.run(
        create_executor_app(config),
        host=config.host,
        port=config.port,
        log_level=_uvicorn_log_level(logging.root.level),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
