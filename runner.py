"""
Bot runner - client wiring, logging setup and main() entry point.

Secrets are read from the environment only (POLYMARKET_PK,
POLYMARKET_FUNDER, POLYMARKET_API_KEY, POLYMARKET_API_SECRET,
POLYMARKET_PASSPHRASE).
"""
import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

import config as cfg
from bot import ConvergenceBot
from core.trade_lifecycle.entry_executor import EntryExecutor
from core.trade_lifecycle.lifecycle import TradeLifecycle
from core.trade_lifecycle.liquidation import LiquidationEngine
from core.trade_lifecycle.market_monitor import MarketMonitor
from core.trade_lifecycle.scheduler import Clock, SystemClock
from core.trade_lifecycle.session import TradingSession
from core.trade_lifecycle.stop_loss import StopLossMonitor
from data_sources.gamma.adapter import GammaMarketResolver
from data_sources.polymarket_data.adapter import PositionSource
from execution.errors import ConfigError, FatalError
from execution.exchange_client import ExchangeClient
from execution.execution_engine import OrderExecutionEngine
from execution.order_signer import OrderSigner
from monitoring.trade_ledger import TradeLedger


def configure_logging(level: str = cfg.LOG_LEVEL, log_dir: str = cfg.LOG_DIR) -> None:
    """Console sink plus a per-run log file."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )
    Path(log_dir).mkdir(parents=True, exist_ok=True)
    logger.add(
        str(Path(log_dir) / "convergence_bot_{time:YYYYMMDD_HHmmss}.log"),
        level="DEBUG",
        rotation="50 MB",
        retention=10,
    )


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ConfigError(f"{name} must be set in the environment")
    return value


def build_exchange_client(variant: str) -> ExchangeClient:
    """Instantiate the ExchangeClient variant selected by name."""
    if variant == "paper":
        from paper_trading import PaperExchangeClient
        return PaperExchangeClient()

    private_key = _require_env("POLYMARKET_PK")
    funder = os.getenv("POLYMARKET_FUNDER") or None
    api_key = os.getenv("POLYMARKET_API_KEY")
    api_secret = os.getenv("POLYMARKET_API_SECRET")
    api_passphrase = os.getenv("POLYMARKET_PASSPHRASE")

    signer = OrderSigner(private_key, funder=funder)
    positions = PositionSource(signer.maker_address)

    if variant == "direct":
        from execution.polymarket_client import DirectSignedClient
        return DirectSignedClient(signer, positions)
    if variant == "hmac":
        from execution.polymarket_client import HmacAuthenticatedClient
        return HmacAuthenticatedClient(signer, positions, api_key, api_secret, api_passphrase)
    if variant == "sdk":
        from execution.clob_sdk_client import SdkMediatedClient
        return SdkMediatedClient(
            private_key,
            positions,
            api_key=api_key,
            api_secret=api_secret,
            api_passphrase=api_passphrase,
            funder=funder,
        )
    raise ConfigError(f"Unknown exchange variant: {variant}")


def build_bot(
    client: ExchangeClient,
    ledger: TradeLedger,
    trade_side: str = cfg.TRADE_SIDE,
    clock: Optional[Clock] = None,
    resolver: Optional[GammaMarketResolver] = None,
) -> ConvergenceBot:
    clock = clock or SystemClock()
    session = TradingSession()
    engine = OrderExecutionEngine(client, clock)

    lifecycle = TradeLifecycle(
        monitor=MarketMonitor(client, clock, session, trade_side=trade_side),
        entry=EntryExecutor(engine, client, clock, session),
        stop_loss=StopLossMonitor(client, clock),
        liquidation=LiquidationEngine(engine, client, clock),
        session=session,
        ledger=ledger,
        clock=clock,
    )
    return ConvergenceBot(
        resolver=resolver or GammaMarketResolver(clock=clock),
        lifecycle=lifecycle,
        session=session,
        clock=clock,
    )


async def run(variant: str, trade_side: str, ledger_path: str, once: bool) -> None:
    client = build_exchange_client(variant)
    bot = build_bot(client, TradeLedger(ledger_path), trade_side=trade_side)
    try:
        if once:
            record = None
            while record is None:
                record = await bot.run_once()
        else:
            await bot.run()
    finally:
        await bot.resolver.close()
        await client.close()


def main():
    parser = argparse.ArgumentParser(description="15-Min Convergence Trading Bot")
    parser.add_argument("--variant", choices=cfg.VALID_VARIANTS, default=cfg.EXCHANGE_VARIANT,
                        help="Exchange client variant")
    parser.add_argument("--paper", action="store_true",
                        help="Simulate fills against live books (same as --variant paper)")
    parser.add_argument("--side", choices=cfg.VALID_TRADE_SIDES, default=cfg.TRADE_SIDE,
                        help="Which outcome(s) may be entered")
    parser.add_argument("--ledger", default=cfg.LEDGER_FILE, help="Trade ledger CSV file")
    parser.add_argument("--once", action="store_true", help="Trade a single market, then exit")

    args = parser.parse_args()
    variant = "paper" if args.paper else args.variant

    configure_logging()

    if variant == "paper":
        logger.info("=" * 60)
        logger.info("PAPER TRADING MODE - no real orders will be placed")
        logger.info("=" * 60)
    else:
        logger.warning("=" * 60)
        logger.warning(f"LIVE TRADING MODE [{variant}] - REAL MONEY AT RISK!")
        logger.warning("=" * 60)

    logger.info(f"Side: {args.side} | Entry: ${cfg.ENTRY_PRICE} | Stop: ${cfg.STOP_LOSS_PRICE} "
                f"| Size: {cfg.POSITION_SIZE} | Ledger: {args.ledger}")

    try:
        cfg.validate()
        asyncio.run(run(variant, args.side, args.ledger, args.once))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except FatalError as e:
        logger.critical(f"Fatal error: {e}")
        sys.exit(1)
    logger.info("Bot stopped")


if __name__ == "__main__":
    main()
