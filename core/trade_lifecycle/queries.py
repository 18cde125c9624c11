"""
Bounded-retry wrappers around the exchange's read endpoints.

Both helpers return None once the budget is spent instead of raising:
an unavailable book or position is a skipped tick, never a crash.
"""
from decimal import Decimal
from typing import Optional

from loguru import logger

import config as cfg
from core.trade_lifecycle.scheduler import Clock
from execution.errors import TransientError
from execution.exchange_client import ExchangeClient
from models import OrderBookSnapshot


async def fetch_book(
    client: ExchangeClient,
    token_id: str,
    clock: Clock,
    attempts: int = cfg.BOOK_FETCH_ATTEMPTS,
    delay: float = cfg.BOOK_FETCH_DELAY,
) -> Optional[OrderBookSnapshot]:
    for attempt in range(1, attempts + 1):
        try:
            return await client.get_book(token_id)
        except TransientError as e:
            logger.warning(f"Order book fetch error (attempt {attempt}/{attempts}): {e}")
            if attempt < attempts:
                await clock.sleep(delay)
    return None


async def fetch_position(
    client: ExchangeClient,
    token_id: str,
    clock: Clock,
    attempts: int = cfg.POSITION_QUERY_ATTEMPTS,
    delay: float = cfg.POSITION_QUERY_DELAY,
) -> Optional[Decimal]:
    for attempt in range(1, attempts + 1):
        logger.info(f"Verifying position (Attempt {attempt}/{attempts})...")
        try:
            return await client.get_position(token_id)
        except TransientError as e:
            logger.warning(f"Position query attempt {attempt} failed: {e}")
            if attempt < attempts:
                await clock.sleep(delay)
    logger.error(f"Position query failed after {attempts} attempts")
    return None
