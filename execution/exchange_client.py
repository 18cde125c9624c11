"""
Exchange Client
Capability interface the trade lifecycle is written against.

Variants differ only in how orders are signed and requests authenticated:
DirectSigned and HmacAuthenticated talk to the CLOB REST API themselves,
SdkMediated delegates to py-clob-client, Paper simulates fills.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from models import OrderBookSnapshot, OrderSide


MATCHED_STATUSES = frozenset({"matched", "filled", "completed"})


@dataclass(frozen=True)
class OrderRequest:
    """Everything needed to build one fill-or-kill order."""
    token_id: str
    side: OrderSide
    price: Decimal
    size: Decimal
    maker_amount: int
    taker_amount: int


@dataclass(frozen=True)
class SubmitResult:
    order_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.order_id is not None and self.error is None


@dataclass(frozen=True)
class OrderStatusReport:
    status: str
    fill_price: Optional[Decimal] = None

    @property
    def is_matched(self) -> bool:
        return self.status.lower() in MATCHED_STATUSES


class ExchangeClient(ABC):
    """
    Order-book, position and order-routing collaborator.

    Query methods raise TransientError on network failure so callers can
    apply their own bounded retry. submit() reports exchange refusals in
    its result rather than raising; only AuthenticationError escapes it.
    """

    name: str = "exchange"

    @abstractmethod
    async def get_book(self, token_id: str) -> OrderBookSnapshot:
        """Best bid/ask for a token."""

    @abstractmethod
    async def get_position(self, token_id: str) -> Decimal:
        """Held size of a token (0 when none)."""

    @abstractmethod
    async def sign_order(self, request: OrderRequest) -> Any:
        """Build and sign a fresh order. The result is only valid for submit()."""

    @abstractmethod
    async def submit(self, signed_order: Any) -> SubmitResult:
        """Post a signed order as fill-or-kill."""

    @abstractmethod
    async def status(self, order_id: str) -> OrderStatusReport:
        """Current status of a posted order."""

    @abstractmethod
    async def cancel(self, order_id: str) -> bool:
        """Cancel a posted order. True if the exchange acknowledged."""

    async def close(self) -> None:
        """Release network resources."""
