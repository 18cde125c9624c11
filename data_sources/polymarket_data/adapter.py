"""
Polymarket Data API Adapter
Position lookup for the trading address.
"""
import math
from decimal import Decimal
from typing import Optional

import httpx
from loguru import logger

import config as cfg
from execution.errors import TransientError


def floor_round(value: Decimal, decimals: int = 1) -> Decimal:
    """Round down to `decimals` places, so we never try to sell more than we hold."""
    multiplier = Decimal(10) ** decimals
    return Decimal(math.floor(value * multiplier)) / multiplier


class PositionSource:
    """Reads held outcome-token sizes from the data API."""

    def __init__(
        self,
        address: str,
        base_url: str = cfg.DATA_API_URL,
        session: Optional[httpx.AsyncClient] = None,
        timeout: float = 3.0,
    ):
        self.address = address
        self.base_url = base_url
        self.session = session or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def get_position(self, token_id: str) -> Decimal:
        """
        Held size of one token, floored to one decimal.

        Raises:
            TransientError: the API could not be reached or returned garbage
        """
        try:
            response = await self.session.get("/positions", params={"user": self.address})
            response.raise_for_status()
            sizes = {
                position.get("asset"): Decimal(str(position.get("size", "0")))
                for position in response.json()
            }
        except (httpx.HTTPError, ValueError, ArithmeticError, AttributeError) as e:
            raise TransientError(f"Position query failed: {e}") from e

        size = floor_round(sizes.get(token_id, Decimal("0")))
        logger.debug(f"Position {token_id[:10]}: {size} shares")
        return size

    async def close(self) -> None:
        await self.session.aclose()
