"""
Trade Lifecycle
Drives one market from first poll to its single ledger record.

    MONITORING --abort--------------------------------------> ABORTED
        |--timeout / closed --------------------------------> CLOSED
        v
    ENTRY_ATTEMPT --exhausted-------------------------------> CLOSED
        v
    POSITION_OPEN <--> STOP_LOSS_ARMED --fired--> LIQUIDATING --> CLOSED
        |--market resolved ---------------------------------> CLOSED
"""
from loguru import logger

from core.trade_lifecycle.entry_executor import EntryExecutor
from core.trade_lifecycle.liquidation import LiquidationEngine
from core.trade_lifecycle.market_monitor import MarketMonitor, MonitorOutcome, MonitorResult
from core.trade_lifecycle.scheduler import Clock
from core.trade_lifecycle.session import TradingSession
from core.trade_lifecycle.stop_loss import StopLossMonitor, StopLossOutcome
from core.trade_lifecycle.trade_state import TradePhase, TradeState
from models import (
    FINAL_HELD_TO_CLOSE,
    FINAL_MARKET_ABORTED,
    FINAL_NO_POSITION,
    FINAL_STOP_LOSS_EXECUTED,
    FINAL_STOP_LOSS_FAILED,
    STATUS_ABORTED,
    STATUS_ENTRY_FAILED,
    STATUS_ENTRY_TIMEOUT,
    STATUS_MARKET_CLOSED,
    STATUS_POSITION_ENTERED,
    Market,
    Outcome,
    TradeRecord,
    format_price,
    format_timestamp,
)
from monitoring.trade_ledger import TradeLedger


class TradeLifecycle:

    def __init__(
        self,
        monitor: MarketMonitor,
        entry: EntryExecutor,
        stop_loss: StopLossMonitor,
        liquidation: LiquidationEngine,
        session: TradingSession,
        ledger: TradeLedger,
        clock: Clock,
    ):
        self.monitor = monitor
        self.entry = entry
        self.stop_loss = stop_loss
        self.liquidation = liquidation
        self.session = session
        self.ledger = ledger
        self.clock = clock

    async def run(self, market: Market) -> TradeRecord:
        """
        Run one market attempt to a terminal phase.

        Args:
            market: Resolved market to trade

        Returns:
            The ledger record, already flushed
        """
        state = TradeState(market.slug)
        record = TradeRecord.for_market(market)

        state.transition(TradePhase.MONITORING)
        watched = await self.monitor.watch(market)

        if watched.outcome is MonitorOutcome.ENTRY_TRIGGERED:
            await self._trade(market, watched, state, record)
        else:
            self._record_no_entry(watched, state, record)

        self.session.finish_market(market.slug, record, self.ledger)
        return record

    def _record_no_entry(self, watched: MonitorResult, state: TradeState, record: TradeRecord) -> None:
        if watched.outcome is MonitorOutcome.ABORTED:
            abort = watched.abort
            record.status = STATUS_ABORTED
            record.final_status = FINAL_MARKET_ABORTED
            record.entry_side = abort.outcome.value
            record.add_note(
                f"{abort.outcome.value} ASK ${abort.ask:.3f} exceeded abort threshold "
                f"${self.monitor.abort_ask_price}"
            )
            state.transition(TradePhase.ABORTED)
            return

        if watched.outcome is MonitorOutcome.ENTRY_TIMEOUT:
            record.status = STATUS_ENTRY_TIMEOUT
        else:
            record.status = STATUS_MARKET_CLOSED
        record.final_status = FINAL_NO_POSITION
        state.transition(TradePhase.CLOSED)

    async def _trade(
        self,
        market: Market,
        watched: MonitorResult,
        state: TradeState,
        record: TradeRecord,
    ) -> None:
        outcome: Outcome = watched.entry.outcome
        record.entry_side = outcome.value
        state.transition(TradePhase.ENTRY_ATTEMPT)

        entered = await self.entry.enter(market, outcome)
        if not entered.filled:
            record.status = STATUS_ENTRY_FAILED
            record.final_status = FINAL_NO_POSITION
            record.add_note(entered.reason)
            state.transition(TradePhase.CLOSED)
            return

        state.transition(TradePhase.POSITION_OPEN)
        record.status = STATUS_POSITION_ENTERED
        record.entry_time = format_timestamp(self.clock.now())
        record.entry_price = format_price(entered.fill.price)
        record.position_size = str(self.entry.position_size)

        try:
            await self._hold(market, outcome, state, record)
        finally:
            self.session.close_position()

    async def _hold(self, market: Market, outcome: Outcome, state: TradeState, record: TradeRecord) -> None:
        guarded = await self.stop_loss.guard(market, outcome, state)

        if guarded.outcome is StopLossOutcome.MARKET_RESOLVED:
            record.final_status = FINAL_HELD_TO_CLOSE
            record.is_sl_triggered = "NO"
            state.transition(TradePhase.CLOSED)
            return

        record.is_sl_triggered = "YES"
        record.sl_time = format_timestamp(guarded.triggered_at)
        state.transition(TradePhase.LIQUIDATING)

        liquidated = await self.liquidation.liquidate(market, outcome)
        if liquidated.note:
            record.add_note(liquidated.note)

        if liquidated.success:
            record.final_status = FINAL_STOP_LOSS_EXECUTED
            record.sl_price = format_price(liquidated.price or guarded.trigger_bid)
        else:
            record.final_status = FINAL_STOP_LOSS_FAILED
            record.add_note(f"trigger bid ${guarded.trigger_bid:.3f}")
            logger.critical(
                f"STOP_LOSS_FAILED on {market.slug}: {outcome.value} position may remain open"
            )
        state.transition(TradePhase.CLOSED)
