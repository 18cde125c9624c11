"""End-to-end tests of one market's lifecycle against a scripted exchange."""
import asyncio
from decimal import Decimal

import pytest

from conftest import FakeExchangeClient, make_book
from core.trade_lifecycle.entry_executor import EntryExecutor
from core.trade_lifecycle.lifecycle import TradeLifecycle
from core.trade_lifecycle.liquidation import LiquidationEngine
from core.trade_lifecycle.market_monitor import MarketMonitor
from core.trade_lifecycle.stop_loss import StopLossMonitor
from execution.errors import LedgerError
from execution.exchange_client import SubmitResult
from execution.execution_engine import OrderExecutionEngine
from models import OrderSide
from monitoring.trade_ledger import TradeLedger

D = Decimal


class RejectingSells(FakeExchangeClient):
    async def submit(self, signed_order):
        if signed_order.side is OrderSide.SELL:
            self.submitted.append(signed_order)
            return SubmitResult(error="FOK not filled")
        return await super().submit(signed_order)


def make_lifecycle(exchange, clock, session, ledger):
    engine = OrderExecutionEngine(exchange, clock, fill_check_attempts=2, fill_check_delay=0.5)
    return TradeLifecycle(
        monitor=MarketMonitor(
            exchange, clock, session,
            trade_side="BOTH", primary_side="YES", tie_break="HIGHER_BID",
            entry_price=D("0.96"), abort_ask_price=D("0.99"), position_size=D("5"),
            market_window=240, entry_timeout=210, polling_interval=1.0,
        ),
        entry=EntryExecutor(
            engine, exchange, clock, session,
            entry_price=D("0.96"), price_tolerance=D("0.01"), position_size=D("5"),
            max_attempts=20, retry_interval=1.0,
        ),
        stop_loss=StopLossMonitor(
            exchange, clock,
            stop_loss_price=D("0.89"), tolerance=D("0"), sustain_time=3.0,
            poll_interval=0.5, resolution_grace=10,
        ),
        liquidation=LiquidationEngine(
            engine, exchange, clock,
            max_attempts=20, retry_delay=0.5, position_attempts=5, position_delay=2,
        ),
        session=session,
        ledger=ledger,
        clock=clock,
    )


def converging_yes(market, drop_at=None):
    """YES pinned near 0.97 until `drop_at`, then 0.85."""
    def script(now):
        if drop_at is not None and now >= drop_at:
            return make_book(market.yes_token, bid="0.85", ask="0.87")
        return make_book(market.yes_token, bid="0.97", ask="0.98")
    return script


@pytest.fixture
def ledger(tmp_path):
    return TradeLedger(tmp_path / "ledger.csv")


class TestTradeLifecycle:

    def test_abort_records_market_aborted(self, exchange, clock, session, market, ledger):
        exchange.books[market.yes_token] = make_book(market.yes_token, bid="0.98", ask="0.995")
        exchange.books[market.no_token] = make_book(market.no_token, bid="0.005", ask="0.01")

        record = asyncio.run(make_lifecycle(exchange, clock, session, ledger).run(market))

        assert record.status == "ABORTED"
        assert record.final_status == "MARKET_ABORTED"
        assert record.entry_side == "YES"
        assert "exceeded abort threshold" in record.notes
        assert exchange.submitted == []
        assert session.is_traded(market.slug)
        assert len(ledger.read()) == 1

    def test_entry_timeout_records_no_position(self, exchange, clock, session, market, ledger):
        exchange.books[market.yes_token] = make_book(market.yes_token, bid="0.60", ask="0.62")
        exchange.books[market.no_token] = make_book(market.no_token, bid="0.38", ask="0.40")

        record = asyncio.run(make_lifecycle(exchange, clock, session, ledger).run(market))

        assert record.status == "ENTRY_TIMEOUT"
        assert record.final_status == "NO_POSITION"
        assert session.is_traded(market.slug)

    def test_held_to_close(self, exchange, clock, session, market, ledger):
        exchange.books[market.yes_token] = converging_yes(market)
        exchange.books[market.no_token] = make_book(market.no_token, bid="0.02", ask="0.03")

        record = asyncio.run(make_lifecycle(exchange, clock, session, ledger).run(market))

        assert record.status == "POSITION_ENTERED"
        assert record.final_status == "HELD_TO_CLOSE"
        assert record.entry_side == "YES"
        assert record.entry_price == "0.980"
        assert record.position_size == "5"
        assert record.is_sl_triggered == "NO"
        assert not session.active_trade
        assert session.is_traded(market.slug)

    def test_stop_loss_executed(self, exchange, clock, session, market, ledger):
        exchange.books[market.yes_token] = converging_yes(market, drop_at=market.close_time - 200)
        exchange.books[market.no_token] = make_book(market.no_token, bid="0.02", ask="0.03")

        record = asyncio.run(make_lifecycle(exchange, clock, session, ledger).run(market))

        assert record.final_status == "STOP_LOSS_EXECUTED"
        assert record.is_sl_triggered == "YES"
        assert record.sl_price == "0.850"
        assert record.sl_time != "-"
        assert exchange.positions[market.yes_token] == 0
        assert [o.side for o in exchange.submitted] == [OrderSide.BUY, OrderSide.SELL]
        assert not session.active_trade

    def test_stop_loss_failed_releases_session(self, clock, session, market, ledger):
        exchange = RejectingSells(clock)
        exchange.books[market.yes_token] = converging_yes(market, drop_at=market.close_time - 200)
        exchange.books[market.no_token] = make_book(market.no_token, bid="0.02", ask="0.03")

        record = asyncio.run(make_lifecycle(exchange, clock, session, ledger).run(market))

        assert record.final_status == "STOP_LOSS_FAILED"
        assert record.is_sl_triggered == "YES"
        assert len([o for o in exchange.submitted if o.side is OrderSide.SELL]) == 20
        assert not session.active_trade
        assert session.is_traded(market.slug)
        rows = ledger.read()
        assert len(rows) == 1
        assert rows[0]["Final_Status"] == "STOP_LOSS_FAILED"

    def test_entry_failed(self, clock, session, market, ledger):
        exchange = FakeExchangeClient(clock)
        exchange.books[market.yes_token] = converging_yes(market)
        exchange.books[market.no_token] = make_book(market.no_token, bid="0.02", ask="0.03")
        exchange.submit_errors = ["not enough balance"] * 20

        record = asyncio.run(make_lifecycle(exchange, clock, session, ledger).run(market))

        assert record.status == "ENTRY_FAILED"
        assert record.final_status == "NO_POSITION"
        assert len(exchange.submitted) == 20
        assert not session.active_trade

    def test_record_flushed_exactly_once(self, exchange, clock, session, market, ledger):
        exchange.books[market.yes_token] = make_book(market.yes_token, bid="0.98", ask="0.995")
        exchange.books[market.no_token] = make_book(market.no_token, bid="0.005", ask="0.01")

        record = asyncio.run(make_lifecycle(exchange, clock, session, ledger).run(market))

        assert record.flushed
        with pytest.raises(LedgerError):
            ledger.append(record)
        assert len(ledger.read()) == 1
