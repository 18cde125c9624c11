"""
Polymarket Client - REST Implementation
Direct integration with the Polymarket CLOB over httpx.

Orders are EIP-712 signed locally by OrderSigner; request-level
authentication is whatever RequestAuthenticator the variant plugs in.
"""
import json
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx
from loguru import logger

import config as cfg
from data_sources.polymarket_data.adapter import PositionSource
from execution.errors import AuthenticationError, TransientError
from execution.exchange_client import (
    ExchangeClient,
    OrderRequest,
    OrderStatusReport,
    SubmitResult,
)
from execution.order_signer import OrderSigner, SignedOrder
from execution.request_auth import HmacRequestAuth, NoRequestAuth, RequestAuthenticator
from models import OrderBookSnapshot


AUTH_FAILURE_CODES = (401, 403)


def _check_auth(response: httpx.Response) -> None:
    if response.status_code in AUTH_FAILURE_CODES:
        raise AuthenticationError(
            f"CLOB refused credentials ({response.status_code}): {response.text[:200]}"
        )


def parse_book(token_id: str, book: Dict[str, Any]) -> OrderBookSnapshot:
    return OrderBookSnapshot.from_levels(
        token_id,
        bids=[(level["price"], level["size"]) for level in book.get("bids") or []],
        asks=[(level["price"], level["size"]) for level in book.get("asks") or []],
    )


class PolymarketRestClient(ExchangeClient):
    """
    CLOB REST client.

    Features:
    - Order book snapshots
    - Fill-or-kill order posting
    - Order status and cancel
    - Position lookup via the data API
    """

    name = "rest"

    def __init__(
        self,
        signer: OrderSigner,
        authenticator: RequestAuthenticator,
        positions: PositionSource,
        host: str = cfg.CLOB_HOST,
        owner: Optional[str] = None,
        session: Optional[httpx.AsyncClient] = None,
        timeout: float = cfg.HTTP_TIMEOUT,
    ):
        self.signer = signer
        self.authenticator = authenticator
        self.positions = positions
        self.host = host
        self.owner = owner or signer.maker_address
        self.session = session or httpx.AsyncClient(
            base_url=host,
            timeout=timeout,
            headers={
                "User-Agent": "ConvergenceBot/1.0",
                "Accept": "application/json",
            },
        )
        logger.info(f"Initialized Polymarket Client [{self.name}] host={host}")

    # ------------------------------------------------------------------
    # Market data
    # ------------------------------------------------------------------

    async def get_book(self, token_id: str) -> OrderBookSnapshot:
        try:
            response = await self.session.get("/book", params={"token_id": token_id})
            response.raise_for_status()
            return parse_book(token_id, response.json())
        except (httpx.HTTPError, ValueError, KeyError, ArithmeticError) as e:
            raise TransientError(f"Order book fetch failed for {token_id[:10]}: {e}") from e

    async def get_position(self, token_id: str) -> Decimal:
        return await self.positions.get_position(token_id)

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def sign_order(self, request: OrderRequest) -> SignedOrder:
        order = self.signer.build_order(
            token_id=request.token_id,
            maker_amount=request.maker_amount,
            taker_amount=request.taker_amount,
            side=request.side,
        )
        return self.signer.sign(order)

    async def submit(self, signed_order: SignedOrder) -> SubmitResult:
        body = json.dumps(
            {
                "order": signed_order.to_payload(),
                "owner": self.owner,
                "orderType": "FOK",
            },
            separators=(",", ":"),
        )
        headers = {"Content-Type": "application/json"}
        headers.update(self.authenticator.headers("POST", "/order", body))

        try:
            response = await self.session.post("/order", content=body, headers=headers)
        except httpx.HTTPError as e:
            return SubmitResult(error=f"transport error: {e}")

        _check_auth(response)

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.is_error:
            message = payload.get("error") or payload.get("errorMsg") or response.text[:200]
            return SubmitResult(error=f"HTTP {response.status_code}: {message}")

        error = payload.get("errorMsg") or payload.get("error")
        order_id = payload.get("orderID") or payload.get("orderId")
        if error or payload.get("success") is False or not order_id:
            return SubmitResult(error=error or f"order not accepted: {payload}")

        return SubmitResult(order_id=order_id)

    async def status(self, order_id: str) -> OrderStatusReport:
        path = f"/data/order/{order_id}"
        try:
            response = await self.session.get(
                path, headers=self.authenticator.headers("GET", path)
            )
        except httpx.HTTPError as e:
            raise TransientError(f"Order status failed for {order_id}: {e}") from e

        _check_auth(response)
        try:
            response.raise_for_status()
            payload = response.json() or {}
        except (httpx.HTTPError, ValueError) as e:
            raise TransientError(f"Order status failed for {order_id}: {e}") from e

        price = payload.get("price")
        return OrderStatusReport(
            status=str(payload.get("status", "unknown")),
            fill_price=Decimal(str(price)) if price not in (None, "") else None,
        )

    async def cancel(self, order_id: str) -> bool:
        body = json.dumps({"orderID": order_id}, separators=(",", ":"))
        headers = {"Content-Type": "application/json"}
        headers.update(self.authenticator.headers("DELETE", "/order", body))

        try:
            response = await self.session.request("DELETE", "/order", content=body, headers=headers)
            _check_auth(response)
            response.raise_for_status()
            canceled = (response.json() or {}).get("canceled") or []
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error cancelling order {order_id}: {e}")
            return False

        if order_id in canceled:
            logger.info(f"Order cancelled: {order_id}")
            return True

        logger.warning(f"Cancel not acknowledged for {order_id}")
        return False

    async def close(self) -> None:
        await self.session.aclose()
        await self.positions.close()
        logger.info("Disconnected from Polymarket")


class DirectSignedClient(PolymarketRestClient):
    """Signed orders only; no request-level authentication."""

    name = "direct"

    def __init__(self, signer: OrderSigner, positions: PositionSource, **kwargs):
        super().__init__(signer, NoRequestAuth(), positions, **kwargs)


class HmacAuthenticatedClient(PolymarketRestClient):
    """Signed orders plus HMAC-signed requests with API key credentials."""

    name = "hmac"

    def __init__(
        self,
        signer: OrderSigner,
        positions: PositionSource,
        api_key: Optional[str],
        api_secret: Optional[str],
        api_passphrase: Optional[str],
        **kwargs,
    ):
        authenticator = HmacRequestAuth(
            address=signer.signer_address,
            api_key=api_key,
            api_secret=api_secret,
            api_passphrase=api_passphrase,
        )
        super().__init__(signer, authenticator, positions, owner=api_key, **kwargs)
