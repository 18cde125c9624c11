"""
Liquidation Engine
Drains an open position with fill-or-kill sells at the best bid.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from loguru import logger

import config as cfg
from core.trade_lifecycle.queries import fetch_book, fetch_position
from core.trade_lifecycle.scheduler import Clock
from execution.exchange_client import ExchangeClient
from execution.execution_engine import OrderExecutionEngine
from models import Filled, Market, OrderSide, Outcome


@dataclass(frozen=True)
class LiquidationResult:
    success: bool
    attempts: int
    price: Optional[Decimal] = None
    note: str = ""


class LiquidationEngine:
    """
    Sells the full held size until nothing is left or attempts run out.

    The held size is re-read before every attempt, so a partial drain by an
    earlier attempt (or a position already gone) is never oversold.
    """

    def __init__(
        self,
        engine: OrderExecutionEngine,
        client: ExchangeClient,
        clock: Clock,
        max_attempts: int = cfg.MAX_LIQUIDATION_ATTEMPTS,
        retry_delay: float = cfg.LIQUIDATION_RETRY_DELAY,
        position_attempts: int = cfg.POSITION_QUERY_ATTEMPTS,
        position_delay: float = cfg.POSITION_QUERY_DELAY,
    ):
        self.engine = engine
        self.client = client
        self.clock = clock
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.position_attempts = position_attempts
        self.position_delay = position_delay

    async def liquidate(self, market: Market, outcome: Outcome) -> LiquidationResult:
        token_id = market.token_for(outcome)

        logger.warning("=" * 60)
        logger.warning(f"LIQUIDATING {outcome.value} position on {market.slug}")
        logger.warning("=" * 60)

        for attempt in range(1, self.max_attempts + 1):
            held = await fetch_position(
                self.client, token_id, self.clock,
                attempts=self.position_attempts, delay=self.position_delay,
            )
            if held is None:
                logger.warning(f"Liquidation attempt {attempt}/{self.max_attempts} skipped: position unknown")
                await self.clock.sleep(self.retry_delay)
                continue

            if held <= 0:
                logger.info("No position held - nothing to liquidate")
                return LiquidationResult(success=True, attempts=attempt, note="no position held")

            book = await fetch_book(self.client, token_id, self.clock)
            if book is None or book.bid_price is None:
                logger.warning(f"Liquidation attempt {attempt}/{self.max_attempts}: no bid available")
                await self.clock.sleep(self.retry_delay)
                continue

            logger.info(
                f"Liquidation attempt {attempt}/{self.max_attempts}: "
                f"SELL {held} @ ${book.bid_price:.3f}"
            )
            result = await self.engine.submit_fill_or_kill(
                token_id, book.bid_price, held, OrderSide.SELL
            )
            if isinstance(result, Filled):
                logger.info(f"Position Liquidated @ ${result.price:.3f}")
                return LiquidationResult(success=True, attempts=attempt, price=result.price)

            logger.warning(f"Liquidation attempt {attempt}/{self.max_attempts} failed: {result}")
            await self.clock.sleep(self.retry_delay)

        logger.critical(
            f"Liquidation failed after {self.max_attempts} attempts - "
            f"{outcome.value} position on {market.slug} may still be open"
        )
        return LiquidationResult(
            success=False,
            attempts=self.max_attempts,
            note=f"liquidation failed after {self.max_attempts} attempts",
        )
