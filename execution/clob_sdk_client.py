"""
Polymarket Client - SDK Implementation
Order routing through py-clob-client.

The SDK is synchronous, so every call runs in a worker thread to keep the
trade lifecycle's event loop responsive.
"""
import asyncio
from decimal import Decimal
from typing import Any, Optional

from eth_account import Account
from eth_keys.exceptions import ValidationError as KeyValidationError
from loguru import logger
from py_clob_client.client import ClobClient
from py_clob_client.clob_types import ApiCreds, OrderArgs, OrderType
from py_clob_client.exceptions import PolyApiException
from py_clob_client.order_builder.constants import BUY, SELL

import config as cfg
from data_sources.polymarket_data.adapter import PositionSource
from execution.errors import AuthenticationError, ConfigError, TransientError
from execution.exchange_client import (
    ExchangeClient,
    OrderRequest,
    OrderStatusReport,
    SubmitResult,
)
from execution.order_signer import signature_type_for
from models import OrderBookSnapshot, OrderSide


def _raise_if_auth(e: PolyApiException) -> None:
    if getattr(e, "status_code", None) in (401, 403):
        raise AuthenticationError(f"CLOB refused credentials: {e}") from e


class SdkMediatedClient(ExchangeClient):
    """ExchangeClient backed by the official py-clob-client SDK."""

    name = "sdk"

    def __init__(
        self,
        private_key: str,
        positions: PositionSource,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        api_passphrase: Optional[str] = None,
        funder: Optional[str] = None,
        host: str = cfg.CLOB_HOST,
        chain_id: int = cfg.CHAIN_ID,
        client: Optional[ClobClient] = None,
    ):
        try:
            signer_address = Account.from_key(private_key).address
        except (TypeError, ValueError, KeyValidationError):
            raise ConfigError("POLYMARKET_PK is not a valid private key") from None

        self.positions = positions
        self.signature_type = signature_type_for(signer_address, funder)
        self.client = client or ClobClient(
            host,
            key=private_key,
            chain_id=chain_id,
            signature_type=self.signature_type,
            funder=funder,
        )

        if api_key and api_secret and api_passphrase:
            self.client.set_api_creds(
                ApiCreds(
                    api_key=api_key,
                    api_secret=api_secret,
                    api_passphrase=api_passphrase,
                )
            )
        else:
            # Derive L2 credentials from the key when none are configured
            try:
                self.client.set_api_creds(self.client.create_or_derive_api_creds())
            except PolyApiException as e:
                raise AuthenticationError(f"Could not derive API credentials: {e}") from e

        logger.info(f"Initialized Polymarket Client [{self.name}] Chain ID: {chain_id}")

    async def get_book(self, token_id: str) -> OrderBookSnapshot:
        try:
            book = await asyncio.to_thread(self.client.get_order_book, token_id)
        except PolyApiException as e:
            _raise_if_auth(e)
            raise TransientError(f"Order book fetch failed for {token_id[:10]}: {e}") from e

        return OrderBookSnapshot.from_levels(
            token_id,
            bids=[(level.price, level.size) for level in book.bids or []],
            asks=[(level.price, level.size) for level in book.asks or []],
        )

    async def get_position(self, token_id: str) -> Decimal:
        return await self.positions.get_position(token_id)

    async def sign_order(self, request: OrderRequest) -> Any:
        order_args = OrderArgs(
            token_id=request.token_id,
            price=float(request.price),
            size=float(request.size),
            side=BUY if request.side is OrderSide.BUY else SELL,
        )
        # create_order looks up tick size and neg-risk over the network
        try:
            return await asyncio.to_thread(self.client.create_order, order_args)
        except PolyApiException as e:
            _raise_if_auth(e)
            raise TransientError(f"Order signing failed for {request.token_id[:10]}: {e}") from e

    async def submit(self, signed_order: Any) -> SubmitResult:
        try:
            response = await asyncio.to_thread(
                self.client.post_order, signed_order, OrderType.FOK
            )
        except PolyApiException as e:
            _raise_if_auth(e)
            return SubmitResult(error=str(e))

        if response and response.get("orderID") and not response.get("errorMsg"):
            return SubmitResult(order_id=response["orderID"])
        return SubmitResult(error=(response or {}).get("errorMsg") or f"order not accepted: {response}")

    async def status(self, order_id: str) -> OrderStatusReport:
        try:
            order = await asyncio.to_thread(self.client.get_order, order_id)
        except PolyApiException as e:
            _raise_if_auth(e)
            raise TransientError(f"Order status failed for {order_id}: {e}") from e

        order = order or {}
        price = order.get("price")
        return OrderStatusReport(
            status=str(order.get("status", "unknown")),
            fill_price=Decimal(str(price)) if price not in (None, "") else None,
        )

    async def cancel(self, order_id: str) -> bool:
        try:
            response = await asyncio.to_thread(self.client.cancel, order_id)
        except PolyApiException as e:
            logger.error(f"Error cancelling order {order_id}: {e}")
            return False

        cancelled = order_id in ((response or {}).get("canceled") or [])
        if cancelled:
            logger.info(f"Order cancelled: {order_id}")
        return cancelled

    async def close(self) -> None:
        await self.positions.close()
