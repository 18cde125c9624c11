"""
Market Monitor
Decides when, and on which side, to enter a market.

Timeline relative to the market's close:

    |---- pre-window ----|---- entry window (MARKET_WINDOW s) ----| close
                         ^ ENTRY_TIMEOUT countdown starts here

Inside the window every poll evaluates abort first, then entry.
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Sequence

from loguru import logger

import config as cfg
from core.trade_lifecycle.queries import fetch_book
from core.trade_lifecycle.scheduler import Clock, Countdown
from core.trade_lifecycle.session import TradingSession
from execution.exchange_client import ExchangeClient
from models import Market, OrderBookSnapshot, Outcome


class TieBreak(Enum):
    PRIMARY = "PRIMARY"        # always take the primary side
    HIGHER_BID = "HIGHER_BID"  # take the richer bid, ties keep the first evaluated


class MonitorOutcome(Enum):
    ENTRY_TRIGGERED = "entry_triggered"
    ABORTED = "aborted"
    ENTRY_TIMEOUT = "entry_timeout"
    MARKET_CLOSED = "market_closed"


@dataclass(frozen=True)
class EntrySignal:
    outcome: Outcome
    bid: Decimal
    ask: Decimal
    ask_size: Decimal


@dataclass(frozen=True)
class AbortSignal:
    outcome: Outcome
    ask: Decimal


@dataclass(frozen=True)
class MonitorResult:
    outcome: MonitorOutcome
    entry: Optional[EntrySignal] = None
    abort: Optional[AbortSignal] = None


def enabled_outcomes(trade_side: str, primary_side: str) -> List[Outcome]:
    """Sides we may enter, primary first."""
    primary = Outcome(primary_side)
    secondary = Outcome.NO if primary is Outcome.YES else Outcome.YES
    if trade_side == "BOTH":
        return [primary, secondary]
    return [Outcome(trade_side)]


def check_abort(
    books: Dict[Outcome, OrderBookSnapshot],
    abort_ask_price: Decimal,
) -> Optional[AbortSignal]:
    """Either side's best ask above the abort price kills the market."""
    for outcome, book in books.items():
        ask = book.ask_price
        if ask is not None and ask > abort_ask_price:
            return AbortSignal(outcome=outcome, ask=ask)
    return None


def qualifies(book: OrderBookSnapshot, entry_price: Decimal, position_size: Decimal) -> bool:
    return (
        book.bid_price is not None
        and book.bid_price >= entry_price
        and book.ask_price is not None
        and book.ask_size >= position_size
    )


def select_entry(
    books: Dict[Outcome, OrderBookSnapshot],
    candidates: Sequence[Outcome],
    entry_price: Decimal,
    position_size: Decimal,
    tie_break: TieBreak,
) -> Optional[EntrySignal]:
    chosen: Optional[EntrySignal] = None
    for outcome in candidates:
        book = books[outcome]
        if not qualifies(book, entry_price, position_size):
            continue
        signal = EntrySignal(
            outcome=outcome,
            bid=book.bid_price,
            ask=book.ask_price,
            ask_size=book.ask_size,
        )
        if chosen is None:
            chosen = signal
            if tie_break is TieBreak.PRIMARY:
                break
        elif signal.bid > chosen.bid:
            chosen = signal
    return chosen


class MarketMonitor:
    """Polls one market until it triggers, aborts, times out or closes."""

    def __init__(
        self,
        client: ExchangeClient,
        clock: Clock,
        session: TradingSession,
        trade_side: str = cfg.TRADE_SIDE,
        primary_side: str = cfg.PRIMARY_SIDE,
        tie_break: str = cfg.ENTRY_TIE_BREAK,
        entry_price: Decimal = cfg.ENTRY_PRICE,
        abort_ask_price: Decimal = cfg.ABORT_ASK_PRICE,
        position_size: Decimal = cfg.POSITION_SIZE,
        market_window: float = cfg.MARKET_WINDOW,
        entry_timeout: float = cfg.ENTRY_TIMEOUT,
        polling_interval: float = cfg.POLLING_INTERVAL,
    ):
        self.client = client
        self.clock = clock
        self.session = session
        self.candidates = enabled_outcomes(trade_side, primary_side)
        self.tie_break = TieBreak(tie_break)
        self.entry_price = entry_price
        self.abort_ask_price = abort_ask_price
        self.position_size = position_size
        self.market_window = market_window
        self.entry_timeout = entry_timeout
        self.polling_interval = polling_interval

    async def _poll_books(self, market: Market) -> Optional[Dict[Outcome, OrderBookSnapshot]]:
        books: Dict[Outcome, OrderBookSnapshot] = {}
        for outcome in (Outcome.YES, Outcome.NO):
            book = await fetch_book(self.client, market.token_for(outcome), self.clock)
            if book is None:
                logger.warning(f"{outcome.value} book unavailable - skipping tick")
                return None
            books[outcome] = book
        return books

    async def watch(self, market: Market) -> MonitorResult:
        logger.info("=" * 60)
        logger.info(f"MONITORING: {market.title}")
        logger.info(f"Link: {market.link}")
        logger.info("=" * 60)

        countdown = Countdown(self.clock, self.entry_timeout)

        while True:
            time_until_close = market.close_time - self.clock.now()

            if time_until_close <= 0:
                logger.info("Market closed. Moving to next market.")
                return MonitorResult(MonitorOutcome.MARKET_CLOSED)

            if time_until_close > self.market_window:
                wait = time_until_close - self.market_window
                logger.debug(f"Waiting for trading window ({wait:.0f}s remaining)...")
                await self.clock.sleep(min(self.polling_interval, wait))
                continue

            if not countdown.started:
                countdown.start()
                logger.info(
                    f"Entry window open: {time_until_close:.0f}s until close, "
                    f"timeout in {self.entry_timeout:.0f}s"
                )

            books = await self._poll_books(market)
            if books is not None:
                abort = check_abort(books, self.abort_ask_price)
                if abort is not None:
                    logger.warning(
                        f"ABORT: {abort.outcome.value} ASK ${abort.ask:.3f} "
                        f"exceeds threshold ${self.abort_ask_price}"
                    )
                    return MonitorResult(MonitorOutcome.ABORTED, abort=abort)

                if not self.session.active_trade:
                    entry = select_entry(
                        books,
                        self.candidates,
                        self.entry_price,
                        self.position_size,
                        self.tie_break,
                    )
                    if entry is not None:
                        logger.info(
                            f"{entry.outcome.value} Entry Trigger! "
                            f"Bid: ${entry.bid:.3f} >= ${self.entry_price} "
                            f"(ask ${entry.ask:.3f} x {entry.ask_size})"
                        )
                        return MonitorResult(MonitorOutcome.ENTRY_TRIGGERED, entry=entry)

                logger.debug(
                    " | ".join(
                        f"{o.value} bid={b.bid_price} ask={b.ask_price}x{b.ask_size}"
                        for o, b in books.items()
                    )
                )

            if countdown.expired:
                logger.info(f"Entry window timed out after {self.entry_timeout:.0f}s")
                return MonitorResult(MonitorOutcome.ENTRY_TIMEOUT)

            await self.clock.sleep(self.polling_interval)
