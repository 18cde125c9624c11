"""
Shared pytest fixtures: a virtual clock and a scripted exchange.
"""
import asyncio
from decimal import Decimal
from itertools import count
from typing import Callable, Dict, List, Optional, Union

import pytest

from core.trade_lifecycle.scheduler import Clock
from core.trade_lifecycle.session import TradingSession
from execution.errors import TransientError
from execution.exchange_client import (
    ExchangeClient,
    OrderRequest,
    OrderStatusReport,
    SubmitResult,
)
from models import BookLevel, Market, OrderBookSnapshot, OrderSide

T0 = 1_771_140_600.0  # an interval open time (multiple of 900)

BookScript = Union[OrderBookSnapshot, Callable[[float], Optional[OrderBookSnapshot]]]


class FakeClock(Clock):
    """Virtual time: sleep() advances now() instantly."""

    def __init__(self, start: float = T0):
        self._now = start
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self._now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self._now += max(0.0, seconds)
        await asyncio.sleep(0)

    def advance(self, seconds: float) -> None:
        self._now += seconds


def make_book(
    token_id: str,
    bid: Optional[str] = None,
    ask: Optional[str] = None,
    ask_size: str = "10",
    bid_size: str = "10",
) -> OrderBookSnapshot:
    return OrderBookSnapshot(
        token_id=token_id,
        best_bid=BookLevel(Decimal(bid), Decimal(bid_size)) if bid is not None else None,
        best_ask=BookLevel(Decimal(ask), Decimal(ask_size)) if ask is not None else None,
    )


class FakeExchangeClient(ExchangeClient):
    """
    Scripted ExchangeClient.

    Books are either fixed snapshots or functions of virtual time; a book
    function returning None simulates a fetch failure. Orders fill unless
    `fill_status` or `submit_errors` say otherwise.
    """

    name = "fake"

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.books: Dict[str, BookScript] = {}
        self.positions: Dict[str, Decimal] = {}
        self.position_failures = 0
        self.submit_errors: List[str] = []
        self.fill_status = "matched"
        self.submitted: List[OrderRequest] = []
        self.cancelled: List[str] = []
        self.book_calls = 0
        self._ids = count(1)
        self._orders: Dict[str, OrderStatusReport] = {}

    async def get_book(self, token_id: str) -> OrderBookSnapshot:
        self.book_calls += 1
        script = self.books.get(token_id)
        book = script(self.clock.now()) if callable(script) else script
        if book is None:
            raise TransientError(f"no book for {token_id}")
        return book

    async def get_position(self, token_id: str) -> Decimal:
        if self.position_failures > 0:
            self.position_failures -= 1
            raise TransientError("positions unavailable")
        return self.positions.get(token_id, Decimal("0"))

    async def sign_order(self, request: OrderRequest) -> OrderRequest:
        return request

    async def submit(self, signed_order: OrderRequest) -> SubmitResult:
        self.submitted.append(signed_order)
        if self.submit_errors:
            return SubmitResult(error=self.submit_errors.pop(0))

        order_id = f"order-{next(self._ids)}"
        self._orders[order_id] = OrderStatusReport(self.fill_status, signed_order.price)
        if self.fill_status == "matched":
            held = self.positions.get(signed_order.token_id, Decimal("0"))
            if signed_order.side is OrderSide.BUY:
                held += signed_order.size
            else:
                held -= signed_order.size
            self.positions[signed_order.token_id] = held
        return SubmitResult(order_id=order_id)

    async def status(self, order_id: str) -> OrderStatusReport:
        return self._orders[order_id]

    async def cancel(self, order_id: str) -> bool:
        self.cancelled.append(order_id)
        return True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def exchange(clock):
    return FakeExchangeClient(clock)


@pytest.fixture
def session():
    return TradingSession()


@pytest.fixture
def market():
    """Market opened at T0, closing 900s later."""
    return Market(
        slug=f"eth-updown-15m-{int(T0)}",
        title="Ethereum Up or Down - Test",
        yes_token="111",
        no_token="222",
        close_time=T0 + 900,
    )


@pytest.fixture
def book():
    return make_book
