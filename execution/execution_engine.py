"""
Execution Engine
Submits fill-or-kill orders and confirms their fills.

Workflow per attempt:
1. Round price to tick, build fixed-point amounts
2. Sign a fresh order (new salt every time)
3. Submit
4. Poll status until matched or the budget runs out
5. Cancel anything left unconfirmed
"""
from decimal import Decimal, ROUND_CEILING, ROUND_DOWN, ROUND_FLOOR
from typing import Any, Dict, Tuple, Union

from loguru import logger

import config as cfg
from core.trade_lifecycle.scheduler import Clock
from execution.errors import TransientError
from execution.exchange_client import ExchangeClient, OrderRequest
from models import Filled, NoFill, OrderSide, Rejected


AMOUNT_SCALE = Decimal(10) ** 6  # USDC and outcome tokens both use 6 decimals

ExecutionResult = Union[Filled, Rejected, NoFill]


def round_to_tick(price: Decimal, side: OrderSide, tick_size: Decimal = cfg.TICK_SIZE) -> Decimal:
    """
    Snap a marketable price onto the exchange's tick grid.

    BUY rounds up and SELL rounds down, so the limit never lands on the
    wrong side of the quote it was taken from.
    """
    rounding = ROUND_CEILING if side is OrderSide.BUY else ROUND_FLOOR
    ticks = (price / tick_size).quantize(Decimal("1"), rounding=rounding)
    return ticks * tick_size


def build_amounts(price: Decimal, size: Decimal, side: OrderSide) -> Tuple[int, int]:
    """
    Maker/taker amounts in fixed-point units.

    BUY gives price*size USDC for size tokens; SELL gives size tokens for
    price*size USDC.
    """
    notional = int((price * size * AMOUNT_SCALE).to_integral_value(rounding=ROUND_DOWN))
    tokens = int((size * AMOUNT_SCALE).to_integral_value(rounding=ROUND_DOWN))
    if side is OrderSide.BUY:
        return notional, tokens
    return tokens, notional


class OrderExecutionEngine:
    """
    Fill-or-kill order execution against one ExchangeClient.

    Each call builds, signs and submits exactly one order; a rejected or
    unfilled order is never resubmitted. Retrying is the caller's job.
    """

    def __init__(
        self,
        client: ExchangeClient,
        clock: Clock,
        tick_size: Decimal = cfg.TICK_SIZE,
        fill_check_attempts: int = cfg.FILL_CHECK_ATTEMPTS,
        fill_check_delay: float = cfg.FILL_CHECK_DELAY,
    ):
        self.client = client
        self.clock = clock
        self.tick_size = tick_size
        self.fill_check_attempts = fill_check_attempts
        self.fill_check_delay = fill_check_delay

        # Statistics
        self._total_orders = 0
        self._filled_orders = 0
        self._rejected_orders = 0
        self._unfilled_orders = 0

        logger.info(f"Initialized Execution Engine [{client.name}]")

    async def submit_fill_or_kill(
        self,
        token_id: str,
        price: Decimal,
        size: Decimal,
        side: OrderSide,
    ) -> ExecutionResult:
        price = round_to_tick(Decimal(str(price)), side, self.tick_size)
        size = Decimal(str(size))
        if not (Decimal("0") < price < Decimal("1")):
            self._rejected_orders += 1
            return Rejected(f"price {price} outside (0, 1)")

        maker_amount, taker_amount = build_amounts(price, size, side)
        request = OrderRequest(
            token_id=token_id,
            side=side,
            price=price,
            size=size,
            maker_amount=maker_amount,
            taker_amount=taker_amount,
        )

        try:
            signed = await self.client.sign_order(request)
        except TransientError as e:
            self._rejected_orders += 1
            logger.warning(f"Order signing failed: {e}")
            return Rejected(f"signing failed: {e}")
        self._total_orders += 1

        logger.info(f"Submitting FOK {side.value} {size} @ {price:.3f} on {token_id[:10]}")
        result = await self.client.submit(signed)

        if not result.accepted:
            self._rejected_orders += 1
            logger.warning(f"Order rejected: {result.error}")
            return Rejected(result.error or "unknown")

        order_id = result.order_id
        for attempt in range(1, self.fill_check_attempts + 1):
            try:
                report = await self.client.status(order_id)
            except TransientError as e:
                logger.warning(f"Fill check {attempt}/{self.fill_check_attempts} failed: {e}")
            else:
                if report.is_matched:
                    fill_price = report.fill_price if report.fill_price is not None else price
                    self._filled_orders += 1
                    logger.info(f"Order {order_id} filled @ {fill_price:.3f}")
                    return Filled(price=fill_price, order_id=order_id)
                logger.debug(f"Order {order_id} status: {report.status}")

            if attempt < self.fill_check_attempts:
                await self.clock.sleep(self.fill_check_delay)

        logger.warning(f"Order {order_id} not filled after {self.fill_check_attempts} checks - cancelling")
        await self.client.cancel(order_id)
        self._unfilled_orders += 1
        return NoFill(order_id=order_id)

    def get_statistics(self) -> Dict[str, Any]:
        """Get execution statistics."""
        return {
            "client": self.client.name,
            "orders": {
                "total": self._total_orders,
                "filled": self._filled_orders,
                "rejected": self._rejected_orders,
                "unfilled": self._unfilled_orders,
            },
        }
