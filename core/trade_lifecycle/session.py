"""
Trading session: the only state shared across markets.

Single-writer rules:
- open_position() is called only by entry orchestration, inside entry_lock.
- close_position() and finish_market() are called only by the lifecycle
  driver, once per market, after the market reached a terminal phase.
"""
import asyncio
from typing import Optional, Set

from loguru import logger

from execution.errors import ActiveTradeError
from models import TradeRecord
from monitoring.trade_ledger import TradeLedger


class TradingSession:

    def __init__(self):
        self.active_trade = False
        self.active_market: Optional[str] = None
        self.traded_markets: Set[str] = set()
        # Serializes the check-then-set of active_trade if markets ever run concurrently
        self.entry_lock = asyncio.Lock()

    def is_traded(self, slug: str) -> bool:
        return slug in self.traded_markets

    def open_position(self, slug: str) -> None:
        if self.active_trade:
            raise ActiveTradeError(
                f"Cannot open {slug}: position already open on {self.active_market}"
            )
        self.active_trade = True
        self.active_market = slug
        logger.info(f"Active trade: {slug}")

    def close_position(self) -> None:
        if self.active_trade:
            logger.info(f"Trade on {self.active_market} released")
        self.active_trade = False
        self.active_market = None

    def finish_market(self, slug: str, record: TradeRecord, ledger: TradeLedger) -> None:
        """Flush the market's single ledger record, then mark it traded."""
        ledger.append(record)
        self.traded_markets.add(slug)
        logger.info(f"Market {slug} finished: {record.status} / {record.final_status}")
