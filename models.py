"""
Data models for the convergence bot.
"""
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple


MARKET_LINK_BASE = "https://polymarket.com/event"


class Outcome(Enum):
    """Which outcome token of a binary market we hold."""
    YES = "YES"
    NO = "NO"


class OrderSide(Enum):
    """Order side."""
    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class Market:
    """A resolved 15-minute market. Read-only once built."""
    slug: str
    title: str
    yes_token: str
    no_token: str
    close_time: float  # unix seconds

    @property
    def link(self) -> str:
        return f"{MARKET_LINK_BASE}/{self.slug}"

    def token_for(self, outcome: Outcome) -> str:
        return self.yes_token if outcome is Outcome.YES else self.no_token


@dataclass(frozen=True)
class BookLevel:
    price: Decimal
    size: Decimal


@dataclass(frozen=True)
class OrderBookSnapshot:
    """Best bid and best ask of one token at one instant."""
    token_id: str
    best_bid: Optional[BookLevel] = None
    best_ask: Optional[BookLevel] = None

    @property
    def bid_price(self) -> Optional[Decimal]:
        return self.best_bid.price if self.best_bid else None

    @property
    def ask_price(self) -> Optional[Decimal]:
        return self.best_ask.price if self.best_ask else None

    @property
    def ask_size(self) -> Decimal:
        return self.best_ask.size if self.best_ask else Decimal("0")

    @classmethod
    def from_levels(
        cls,
        token_id: str,
        bids: Sequence[Tuple[Any, Any]],
        asks: Sequence[Tuple[Any, Any]],
    ) -> "OrderBookSnapshot":
        """
        Build a snapshot from raw (price, size) pairs.

        Best ask is the minimum ask price, best bid the maximum bid price,
        whatever order the exchange returned the levels in.
        """
        best_bid = None
        best_ask = None
        if bids:
            price, size = max(bids, key=lambda level: Decimal(str(level[0])))
            best_bid = BookLevel(Decimal(str(price)), Decimal(str(size)))
        if asks:
            price, size = min(asks, key=lambda level: Decimal(str(level[0])))
            best_ask = BookLevel(Decimal(str(price)), Decimal(str(size)))
        return cls(token_id=token_id, best_bid=best_bid, best_ask=best_ask)


@dataclass(frozen=True)
class Filled:
    price: Decimal
    order_id: Optional[str] = None


@dataclass(frozen=True)
class Rejected:
    reason: str


@dataclass(frozen=True)
class NoFill:
    order_id: str


# Trade status vocabulary written to the ledger
STATUS_ABORTED = "ABORTED"
STATUS_ENTRY_TIMEOUT = "ENTRY_TIMEOUT"
STATUS_MARKET_CLOSED = "MARKET_CLOSED"
STATUS_ENTRY_FAILED = "ENTRY_FAILED"
STATUS_POSITION_ENTERED = "POSITION_ENTERED"

FINAL_MARKET_ABORTED = "MARKET_ABORTED"
FINAL_NO_POSITION = "NO_POSITION"
FINAL_STOP_LOSS_EXECUTED = "STOP_LOSS_EXECUTED"
FINAL_STOP_LOSS_FAILED = "STOP_LOSS_FAILED"
FINAL_HELD_TO_CLOSE = "HELD_TO_CLOSE"

EMPTY = "-"

LEDGER_HEADER: List[str] = [
    "Market Title",
    "Market Link",
    "Status",
    "entry1_Time",
    "entry_Side",
    "entry_Price",
    "position_size",
    "sl_Time",
    "sl_Price",
    "Final_Status",
    "Notes",
    "is_SL_Triggered",
]


@dataclass
class TradeRecord:
    """Ledger row for one market attempt. Every unset column prints as '-'."""
    title: str = EMPTY
    link: str = EMPTY
    status: str = EMPTY
    entry_time: str = EMPTY
    entry_side: str = EMPTY
    entry_price: str = EMPTY
    position_size: str = EMPTY
    sl_time: str = EMPTY
    sl_price: str = EMPTY
    final_status: str = EMPTY
    notes: str = EMPTY
    is_sl_triggered: str = EMPTY
    flushed: bool = field(default=False, compare=False)

    @classmethod
    def for_market(cls, market: Market) -> "TradeRecord":
        return cls(title=market.title, link=market.link)

    def add_note(self, note: str) -> None:
        if self.notes == EMPTY:
            self.notes = note
        else:
            self.notes = f"{self.notes}; {note}"

    def to_row(self) -> List[str]:
        return [
            getattr(self, f.name)
            for f in fields(self)
            if f.name != "flushed"
        ]

    def to_dict(self) -> Dict[str, str]:
        return dict(zip(LEDGER_HEADER, self.to_row()))


def format_price(price: Optional[Decimal]) -> str:
    if price is None:
        return EMPTY
    return f"{price:.3f}"


def format_timestamp(ts: float) -> str:
    """UTC wall-clock time as written to the ledger."""
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
