"""
Entry orchestration: turns an entry trigger into a filled position.

Every attempt re-reads the live book. Attempts whose price has drifted or
whose ask is too thin are skipped without touching the order endpoint.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from loguru import logger

import config as cfg
from core.trade_lifecycle.queries import fetch_book
from core.trade_lifecycle.scheduler import Clock
from core.trade_lifecycle.session import TradingSession
from execution.exchange_client import ExchangeClient
from execution.execution_engine import OrderExecutionEngine
from models import Filled, Market, OrderBookSnapshot, OrderSide, Outcome


@dataclass(frozen=True)
class EntryResult:
    fill: Optional[Filled]
    attempts: int
    reason: str = ""

    @property
    def filled(self) -> bool:
        return self.fill is not None


class EntryExecutor:

    def __init__(
        self,
        engine: OrderExecutionEngine,
        client: ExchangeClient,
        clock: Clock,
        session: TradingSession,
        entry_price: Decimal = cfg.ENTRY_PRICE,
        price_tolerance: Decimal = cfg.ENTRY_PRICE_TOLERANCE,
        position_size: Decimal = cfg.POSITION_SIZE,
        max_attempts: int = cfg.MAX_ENTRY_ATTEMPTS,
        retry_interval: float = cfg.POLLING_INTERVAL,
    ):
        self.engine = engine
        self.client = client
        self.clock = clock
        self.session = session
        self.entry_price = entry_price
        self.price_tolerance = price_tolerance
        self.position_size = position_size
        self.max_attempts = max_attempts
        self.retry_interval = retry_interval

    def pre_submit_check(self, book: Optional[OrderBookSnapshot]) -> Optional[str]:
        """Reason to skip this attempt, or None if it may be submitted."""
        if book is None:
            return "order book unavailable"
        if book.bid_price is None or book.bid_price < self.entry_price - self.price_tolerance:
            return f"bid {book.bid_price} drifted below {self.entry_price} - {self.price_tolerance}"
        if book.ask_price is None:
            return "no ask"
        if book.ask_size < self.position_size:
            return f"ask size {book.ask_size} < position size {self.position_size}"
        return None

    async def enter(self, market: Market, outcome: Outcome) -> EntryResult:
        token_id = market.token_for(outcome)
        logger.info(f"Attempting {outcome.value} entry: {self.position_size} shares")

        async with self.session.entry_lock:
            attempt = 0
            reason = f"{self.max_attempts} entry attempts exhausted"
            while attempt < self.max_attempts:
                if self.session.active_trade:
                    reason = f"another trade is active ({self.session.active_market})"
                    break
                if self.clock.now() >= market.close_time:
                    reason = "market closed during entry"
                    break

                attempt += 1
                book = await fetch_book(self.client, token_id, self.clock)
                skip = self.pre_submit_check(book)
                if skip:
                    logger.info(f"Entry attempt {attempt}/{self.max_attempts} skipped: {skip}")
                    await self.clock.sleep(self.retry_interval)
                    continue

                logger.info(
                    f"Entry attempt {attempt}/{self.max_attempts}: "
                    f"BUY {self.position_size} @ ${book.ask_price:.3f}"
                )
                result = await self.engine.submit_fill_or_kill(
                    token_id, book.ask_price, self.position_size, OrderSide.BUY
                )
                if isinstance(result, Filled):
                    self.session.open_position(market.slug)
                    logger.info(f"Order filled! Position entered @ ${result.price:.3f}")
                    return EntryResult(fill=result, attempts=attempt)

                logger.warning(f"Entry attempt {attempt}/{self.max_attempts} failed: {result}")
                await self.clock.sleep(self.retry_interval)

        logger.error(f"Entry failed: {reason}")
        return EntryResult(fill=None, attempts=attempt, reason=reason)
