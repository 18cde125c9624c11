"""Tests for the entry trigger: window timing, abort, entry and tie-break."""
import asyncio
from decimal import Decimal

from conftest import T0, make_book
from core.trade_lifecycle.market_monitor import (
    MarketMonitor,
    MonitorOutcome,
    TieBreak,
    check_abort,
    enabled_outcomes,
    select_entry,
)
from models import Outcome


def make_monitor(exchange, clock, session, **overrides):
    params = dict(
        trade_side="BOTH",
        primary_side="YES",
        tie_break="HIGHER_BID",
        entry_price=Decimal("0.96"),
        abort_ask_price=Decimal("0.99"),
        position_size=Decimal("5"),
        market_window=240,
        entry_timeout=210,
        polling_interval=1.0,
    )
    params.update(overrides)
    return MarketMonitor(exchange, clock, session, **params)


def set_books(exchange, market, yes, no):
    exchange.books[market.yes_token] = yes
    exchange.books[market.no_token] = no


class TestEntryRules:
    """Pure abort / entry evaluation."""

    def test_enabled_outcomes_primary_first(self):
        assert enabled_outcomes("BOTH", "YES") == [Outcome.YES, Outcome.NO]
        assert enabled_outcomes("BOTH", "NO") == [Outcome.NO, Outcome.YES]
        assert enabled_outcomes("NO", "YES") == [Outcome.NO]

    def test_abort_checks_either_side(self):
        books = {
            Outcome.YES: make_book("y", bid="0.01", ask="0.02"),
            Outcome.NO: make_book("n", bid="0.98", ask="0.995"),
        }
        abort = check_abort(books, Decimal("0.99"))
        assert abort.outcome is Outcome.NO
        assert abort.ask == Decimal("0.995")

    def test_ask_at_threshold_does_not_abort(self):
        books = {Outcome.YES: make_book("y", bid="0.98", ask="0.99")}
        assert check_abort(books, Decimal("0.99")) is None

    def test_thin_ask_never_qualifies(self):
        books = {Outcome.YES: make_book("y", bid="0.97", ask="0.98", ask_size="4")}
        assert select_entry(books, [Outcome.YES], Decimal("0.96"), Decimal("5"), TieBreak.PRIMARY) is None

    def test_missing_ask_never_qualifies(self):
        books = {Outcome.YES: make_book("y", bid="0.97")}
        assert select_entry(books, [Outcome.YES], Decimal("0.96"), Decimal("5"), TieBreak.PRIMARY) is None

    def test_tie_break_higher_bid(self):
        books = {
            Outcome.YES: make_book("y", bid="0.96", ask="0.97"),
            Outcome.NO: make_book("n", bid="0.97", ask="0.98"),
        }
        entry = select_entry(books, [Outcome.YES, Outcome.NO], Decimal("0.96"), Decimal("5"), TieBreak.HIGHER_BID)
        assert entry.outcome is Outcome.NO

    def test_tie_break_equal_bids_keep_primary(self):
        books = {
            Outcome.YES: make_book("y", bid="0.97", ask="0.98"),
            Outcome.NO: make_book("n", bid="0.97", ask="0.98"),
        }
        entry = select_entry(books, [Outcome.YES, Outcome.NO], Decimal("0.96"), Decimal("5"), TieBreak.HIGHER_BID)
        assert entry.outcome is Outcome.YES

    def test_tie_break_primary(self):
        books = {
            Outcome.YES: make_book("y", bid="0.96", ask="0.97"),
            Outcome.NO: make_book("n", bid="0.97", ask="0.98"),
        }
        entry = select_entry(books, [Outcome.YES, Outcome.NO], Decimal("0.96"), Decimal("5"), TieBreak.PRIMARY)
        assert entry.outcome is Outcome.YES


class TestMarketMonitor:
    """The polling loop against a scripted exchange and virtual clock."""

    def test_entry_trigger(self, exchange, clock, session, market):
        clock.advance(660)
        set_books(
            exchange, market,
            make_book(market.yes_token, bid="0.97", ask="0.95", ask_size="10"),
            make_book(market.no_token, bid="0.03", ask="0.04"),
        )
        result = asyncio.run(make_monitor(exchange, clock, session).watch(market))

        assert result.outcome is MonitorOutcome.ENTRY_TRIGGERED
        assert result.entry.outcome is Outcome.YES
        assert result.entry.ask == Decimal("0.95")

    def test_waits_for_entry_window(self, exchange, clock, session, market):
        set_books(
            exchange, market,
            make_book(market.yes_token, bid="0.97", ask="0.98"),
            make_book(market.no_token, bid="0.02", ask="0.03"),
        )
        result = asyncio.run(make_monitor(exchange, clock, session).watch(market))

        assert result.outcome is MonitorOutcome.ENTRY_TRIGGERED
        assert clock.now() >= market.close_time - 240
        assert exchange.book_calls == 2

    def test_abort_beats_entry(self, exchange, clock, session, market):
        clock.advance(660)
        set_books(
            exchange, market,
            make_book(market.yes_token, bid="0.97", ask="0.995"),
            make_book(market.no_token, bid="0.01", ask="0.02"),
        )
        result = asyncio.run(make_monitor(exchange, clock, session).watch(market))

        assert result.outcome is MonitorOutcome.ABORTED
        assert result.abort.outcome is Outcome.YES
        assert result.entry is None

    def test_abort_on_disabled_side(self, exchange, clock, session, market):
        clock.advance(660)
        set_books(
            exchange, market,
            make_book(market.yes_token, bid="0.97", ask="0.98"),
            make_book(market.no_token, bid="0.98", ask="0.995"),
        )
        monitor = make_monitor(exchange, clock, session, trade_side="YES")
        result = asyncio.run(monitor.watch(market))

        assert result.outcome is MonitorOutcome.ABORTED
        assert result.abort.outcome is Outcome.NO

    def test_thin_book_times_out(self, exchange, clock, session, market):
        clock.advance(660)
        set_books(
            exchange, market,
            make_book(market.yes_token, bid="0.97", ask="0.98", ask_size="3"),
            make_book(market.no_token, bid="0.01", ask="0.02"),
        )
        result = asyncio.run(make_monitor(exchange, clock, session).watch(market))

        assert result.outcome is MonitorOutcome.ENTRY_TIMEOUT
        assert market.close_time - 240 + 210 <= clock.now() < market.close_time

    def test_market_closes_before_timeout(self, exchange, clock, session, market):
        clock.advance(800)
        set_books(
            exchange, market,
            make_book(market.yes_token, bid="0.50", ask="0.51"),
            make_book(market.no_token, bid="0.49", ask="0.50"),
        )
        result = asyncio.run(make_monitor(exchange, clock, session).watch(market))

        assert result.outcome is MonitorOutcome.MARKET_CLOSED
        assert clock.now() >= market.close_time

    def test_no_entry_while_trade_active(self, exchange, clock, session, market):
        clock.advance(660)
        session.open_position("some-other-market")
        set_books(
            exchange, market,
            make_book(market.yes_token, bid="0.97", ask="0.98"),
            make_book(market.no_token, bid="0.01", ask="0.02"),
        )
        result = asyncio.run(make_monitor(exchange, clock, session).watch(market))

        assert result.outcome is MonitorOutcome.ENTRY_TIMEOUT

    def test_book_failure_skips_tick(self, exchange, clock, session, market):
        clock.advance(660)
        recovers_at = clock.now() + 10

        def yes_book(now):
            if now < recovers_at:
                return None
            return make_book(market.yes_token, bid="0.97", ask="0.98")

        set_books(exchange, market, yes_book, make_book(market.no_token, bid="0.01", ask="0.02"))
        result = asyncio.run(make_monitor(exchange, clock, session).watch(market))

        assert result.outcome is MonitorOutcome.ENTRY_TRIGGERED
        assert clock.now() >= recovers_at
