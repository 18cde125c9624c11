"""
Stop Loss Monitor
Sustained-breach stop-loss for an open position.

The stop fires only when the bid stays at or below the threshold for a
contiguous SUSTAIN_TIME. Any recovery resets the timer to zero; time spent
below the threshold is never accumulated across dips.
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from loguru import logger

import config as cfg
from core.trade_lifecycle.scheduler import Clock, Deadline
from core.trade_lifecycle.trade_state import TradePhase, TradeState
from execution.errors import TransientError
from execution.exchange_client import ExchangeClient
from models import Market, Outcome


class BreachEvent(Enum):
    NONE = "none"          # above threshold, no timer
    ARMED = "armed"        # timer just started
    HOLDING = "holding"    # timer running, not yet sustained
    RESET = "reset"        # recovered, timer cleared
    FIRED = "fired"        # sustained long enough


class SustainedBreachDetector:
    """Debounces a price threshold by time. Fires at most once."""

    def __init__(
        self,
        threshold: Decimal,
        sustain_time: float,
        tolerance: Decimal = Decimal("0"),
    ):
        self.threshold = threshold
        self.sustain_time = sustain_time
        self.tolerance = tolerance
        self.breach_started_at: Optional[float] = None
        self.fired = False

    def is_breach(self, bid: Decimal) -> bool:
        return bid <= self.threshold + self.tolerance

    def observe(self, bid: Optional[Decimal], now: float) -> BreachEvent:
        if self.fired:
            return BreachEvent.NONE

        if bid is None:
            # No quote: neither evidence of breach nor of recovery
            return BreachEvent.HOLDING if self.breach_started_at is not None else BreachEvent.NONE

        if not self.is_breach(bid):
            if self.breach_started_at is not None:
                self.breach_started_at = None
                return BreachEvent.RESET
            return BreachEvent.NONE

        event = BreachEvent.HOLDING
        if self.breach_started_at is None:
            self.breach_started_at = now
            event = BreachEvent.ARMED

        if now - self.breach_started_at >= self.sustain_time:
            self.fired = True
            return BreachEvent.FIRED
        return event

    def elapsed(self, now: float) -> float:
        if self.breach_started_at is None:
            return 0.0
        return now - self.breach_started_at


class StopLossOutcome(Enum):
    TRIGGERED = "triggered"
    MARKET_RESOLVED = "market_resolved"


@dataclass(frozen=True)
class StopLossResult:
    outcome: StopLossOutcome
    trigger_bid: Optional[Decimal] = None
    triggered_at: Optional[float] = None


class StopLossMonitor:

    def __init__(
        self,
        client: ExchangeClient,
        clock: Clock,
        stop_loss_price: Decimal = cfg.STOP_LOSS_PRICE,
        tolerance: Decimal = cfg.STOP_LOSS_TOLERANCE,
        sustain_time: float = cfg.SUSTAIN_TIME,
        poll_interval: float = cfg.STOP_LOSS_POLL_INTERVAL,
        resolution_grace: float = cfg.RESOLUTION_GRACE,
    ):
        self.client = client
        self.clock = clock
        self.stop_loss_price = stop_loss_price
        self.tolerance = tolerance
        self.sustain_time = sustain_time
        self.poll_interval = poll_interval
        self.resolution_grace = resolution_grace

    async def _current_bid(self, token_id: str) -> Optional[Decimal]:
        # Single attempt: a retry delay here would distort the sustain timer
        try:
            book = await self.client.get_book(token_id)
        except TransientError as e:
            logger.warning(f"Stop-loss book poll failed: {e}")
            return None
        return book.bid_price

    async def guard(self, market: Market, outcome: Outcome, state: TradeState) -> StopLossResult:
        logger.info(f"Stop Loss Monitor Active (Trigger: ${self.stop_loss_price:.3f}, sustain {self.sustain_time}s)")

        token_id = market.token_for(outcome)
        detector = SustainedBreachDetector(self.stop_loss_price, self.sustain_time, self.tolerance)
        stand_down = Deadline(self.clock, market.close_time + self.resolution_grace)

        while not stand_down.expired:
            bid = await self._current_bid(token_id)
            now = self.clock.now()
            event = detector.observe(bid, now)

            if event is BreachEvent.ARMED:
                state.transition(TradePhase.STOP_LOSS_ARMED)
                logger.warning(
                    f"{outcome.value} price ${bid:.3f} below SL ${self.stop_loss_price:.3f}. Timer started..."
                )
            elif event is BreachEvent.RESET:
                state.transition(TradePhase.POSITION_OPEN)
                logger.info(f"{outcome.value} price recovered to ${bid:.3f}. Resetting timer.")

            if event is BreachEvent.FIRED:
                if state.phase is TradePhase.POSITION_OPEN:
                    # sustain_time of zero fires on the arming poll
                    state.transition(TradePhase.STOP_LOSS_ARMED)
                logger.warning("=" * 60)
                logger.warning(
                    f"STOP LOSS TRIGGERED! Price sustained below ${self.stop_loss_price:.3f} "
                    f"for {detector.elapsed(now):.1f}s (bid ${bid:.3f})"
                )
                logger.warning("=" * 60)
                return StopLossResult(StopLossOutcome.TRIGGERED, trigger_bid=bid, triggered_at=now)

            await self.clock.sleep(self.poll_interval)

        logger.info("Market resolved with position held - stop-loss monitor standing down")
        return StopLossResult(StopLossOutcome.MARKET_RESOLVED)
