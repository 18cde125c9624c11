"""
Convergence Bot
Rotates through consecutive 15-minute markets, one lifecycle per market.

Slugs are derived from the current interval's open timestamp, e.g.
eth-updown-15m-1771140600 for the market that opened at 1771140600.
"""
import math
from typing import Optional

from loguru import logger

import config as cfg
from core.trade_lifecycle.lifecycle import TradeLifecycle
from core.trade_lifecycle.scheduler import Clock
from core.trade_lifecycle.session import TradingSession
from data_sources.gamma.adapter import GammaMarketResolver
from models import TradeRecord, format_timestamp


UNRESOLVED_MARKET_SLEEP = 2
LOOP_SLEEP = 1


def current_market_slug(now: float, prefix: str = cfg.MARKET_SLUG_PREFIX,
                        interval: int = cfg.MARKET_INTERVAL_SECONDS) -> str:
    open_ts = int(math.floor(now / interval) * interval)
    return f"{prefix}-{open_ts}"


class ConvergenceBot:
    """
    Market rotation loop.

    A market is entered at most once per process: after its lifecycle
    finishes the slug sits in the session's traded set until the next
    interval opens.
    """

    def __init__(
        self,
        resolver: GammaMarketResolver,
        lifecycle: TradeLifecycle,
        session: TradingSession,
        clock: Clock,
        slug_prefix: str = cfg.MARKET_SLUG_PREFIX,
        interval: int = cfg.MARKET_INTERVAL_SECONDS,
        index_delay: float = cfg.MARKET_INDEX_DELAY,
        traded_sleep: float = cfg.TRADED_MARKET_SLEEP,
        not_listed_sleep: float = cfg.MARKET_NOT_LISTED_SLEEP,
    ):
        self.resolver = resolver
        self.lifecycle = lifecycle
        self.session = session
        self.clock = clock
        self.slug_prefix = slug_prefix
        self.interval = interval
        self.index_delay = index_delay
        self.traded_sleep = traded_sleep
        self.not_listed_sleep = not_listed_sleep

    async def run(self) -> None:
        logger.info("=" * 60)
        logger.info(f"CONVERGENCE BOT RUNNING ({self.slug_prefix})")
        logger.info("=" * 60)

        while True:
            await self.run_once()

    async def run_once(self) -> Optional[TradeRecord]:
        """One rotation step. Returns the record if a market was traded."""
        now = self.clock.now()
        slug = current_market_slug(now, self.slug_prefix, self.interval)
        open_ts = now - (now % self.interval)
        elapsed_since_open = now - open_ts

        logger.debug(
            f"Current Market: {slug} | Open Time: {format_timestamp(open_ts)} | "
            f"Next in: {self.interval - elapsed_since_open:.0f}s"
        )

        if self.session.is_traded(slug):
            logger.debug("Already traded this market. Waiting for next...")
            await self.clock.sleep(self.traded_sleep)
            return None

        if elapsed_since_open < self.index_delay:
            logger.info(f"Market just opened. Waiting {self.index_delay}s for API indexing...")
            await self.clock.sleep(self.index_delay)
            return None

        market = await self.resolver.resolve(slug)
        if market is None:
            if self.resolver.not_listed:
                # Never sleep past the next interval's open
                wait = min(self.not_listed_sleep, self.interval - elapsed_since_open)
                logger.warning(f"Market {slug} not listed yet. Sleeping {wait:.0f}s before retrying...")
                await self.clock.sleep(wait)
            else:
                logger.warning(f"Unable to fetch market {slug}. Retrying...")
                await self.clock.sleep(UNRESOLVED_MARKET_SLEEP)
            return None

        record = await self.lifecycle.run(market)
        await self.clock.sleep(LOOP_SLEEP)
        return record
