"""
Paper trading exchange client.

Reads live order books from the public CLOB endpoint and simulates
fill-or-kill fills against them. No order ever leaves the process.
"""
import json
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional, Union

import httpx
from loguru import logger

import config as cfg
from execution.errors import TransientError
from execution.exchange_client import (
    ExchangeClient,
    OrderRequest,
    OrderStatusReport,
    SubmitResult,
)
from execution.polymarket_client import parse_book
from models import OrderBookSnapshot, OrderSide


PAPER_TRADES_FILE = "paper_trades.json"


class PaperExchangeClient(ExchangeClient):
    """
    Simulated order routing against live books.

    A BUY fills when the best ask is at or below the limit with enough size
    behind it; a SELL fills when the best bid is at or above the limit. The
    held size per token is tracked in memory.
    """

    name = "paper"

    def __init__(
        self,
        host: str = cfg.CLOB_HOST,
        session: Optional[httpx.AsyncClient] = None,
        trades_file: Union[str, Path] = PAPER_TRADES_FILE,
        timeout: float = cfg.HTTP_TIMEOUT,
    ):
        self.session = session or httpx.AsyncClient(base_url=host, timeout=timeout)
        self.trades_file = Path(trades_file)
        self.positions: Dict[str, Decimal] = {}
        self.orders: Dict[str, OrderStatusReport] = {}
        self.paper_trades: List[Dict[str, str]] = []
        logger.info(f"Initialized Polymarket Client [{self.name}] - no real orders will be placed")

    async def get_book(self, token_id: str) -> OrderBookSnapshot:
        try:
            response = await self.session.get("/book", params={"token_id": token_id})
            response.raise_for_status()
            return parse_book(token_id, response.json())
        except (httpx.HTTPError, ValueError, KeyError, ArithmeticError) as e:
            raise TransientError(f"Order book fetch failed for {token_id[:10]}: {e}") from e

    async def get_position(self, token_id: str) -> Decimal:
        return self.positions.get(token_id, Decimal("0"))

    async def sign_order(self, request: OrderRequest) -> OrderRequest:
        return request

    def _match(self, request: OrderRequest, book: OrderBookSnapshot) -> Optional[Decimal]:
        if request.side is OrderSide.BUY:
            level = book.best_ask
            if level and level.price <= request.price and level.size >= request.size:
                return level.price
            return None
        level = book.best_bid
        if level and level.price >= request.price and level.size >= request.size:
            return level.price
        return None

    async def submit(self, signed_order: OrderRequest) -> SubmitResult:
        try:
            book = await self.get_book(signed_order.token_id)
        except TransientError as e:
            return SubmitResult(error=str(e))

        fill_price = self._match(signed_order, book)
        if fill_price is None:
            return SubmitResult(error="FOK order could not be fully filled")

        held = self.positions.get(signed_order.token_id, Decimal("0"))
        if signed_order.side is OrderSide.BUY:
            held += signed_order.size
        else:
            held = max(Decimal("0"), held - signed_order.size)
        self.positions[signed_order.token_id] = held

        order_id = f"paper-{uuid.uuid4().hex[:16]}"
        self.orders[order_id] = OrderStatusReport(status="matched", fill_price=fill_price)
        self._record(order_id, signed_order, fill_price)
        return SubmitResult(order_id=order_id)

    async def status(self, order_id: str) -> OrderStatusReport:
        report = self.orders.get(order_id)
        if report is None:
            raise TransientError(f"Unknown paper order {order_id}")
        return report

    async def cancel(self, order_id: str) -> bool:
        return False

    def _record(self, order_id: str, request: OrderRequest, fill_price: Decimal) -> None:
        trade = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "order_id": order_id,
            "token_id": request.token_id,
            "side": request.side.value,
            "size": str(request.size),
            "price": str(fill_price),
        }
        self.paper_trades.append(trade)

        logger.info("=" * 60)
        logger.info("[SIMULATION] PAPER TRADE RECORDED")
        logger.info(f"  Side: {request.side.value}")
        logger.info(f"  Size: {request.size}")
        logger.info(f"  Fill Price: ${fill_price:.3f}")
        logger.info(f"  Total Paper Trades: {len(self.paper_trades)}")
        logger.info("=" * 60)

        self.save_paper_trades()

    def save_paper_trades(self) -> None:
        """Save paper trades to JSON file."""
        try:
            with self.trades_file.open("w") as f:
                json.dump(self.paper_trades, f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save paper trades: {e}")

    async def close(self) -> None:
        await self.session.aclose()
