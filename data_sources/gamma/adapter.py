"""
Gamma API Adapter
Resolves a market slug into its outcome tokens.
"""
import json
from datetime import datetime
from typing import Any, Dict, Optional

import httpx
from loguru import logger

import config as cfg
from core.trade_lifecycle.scheduler import Clock, SystemClock
from models import Market


def close_time_from_slug(slug: str, interval: int = cfg.MARKET_INTERVAL_SECONDS) -> Optional[float]:
    """Slugs end in the market's open timestamp, e.g. eth-updown-15m-1771140600."""
    try:
        return float(int(slug.rsplit("-", 1)[1]) + interval)
    except (IndexError, ValueError):
        return None


def _parse_end_date(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return None


class GammaMarketResolver:
    """
    Market discovery by slug.

    "Not listed yet" is a normal answer and comes back as None, as do
    lookups that kept failing after the retry budget.
    """

    def __init__(
        self,
        base_url: str = cfg.GAMMA_API_URL,
        session: Optional[httpx.AsyncClient] = None,
        clock: Optional[Clock] = None,
        attempts: int = cfg.MARKET_LOOKUP_ATTEMPTS,
        retry_delay: float = cfg.MARKET_LOOKUP_DELAY,
    ):
        self.base_url = base_url
        self.session = session or httpx.AsyncClient(base_url=base_url, timeout=10.0)
        self.clock = clock or SystemClock()
        self.attempts = attempts
        self.retry_delay = retry_delay
        # True when the last resolve() found no event at all for the slug
        self.not_listed = False

    async def resolve(self, slug: str) -> Optional[Market]:
        self.not_listed = False
        for attempt in range(1, self.attempts + 1):
            logger.info(f"Fetching market '{slug}' (Attempt {attempt}/{self.attempts})")
            try:
                return await self._fetch(slug)
            except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
                logger.warning(f"Market fetch attempt {attempt}/{self.attempts} failed: {e}")
                if attempt < self.attempts:
                    await self.clock.sleep(self.retry_delay)
        return None

    async def _fetch(self, slug: str) -> Optional[Market]:
        response = await self.session.get("/events", params={"slug": slug})

        if response.status_code == 404:
            logger.warning(f"404 Error: Market '{slug}' not found")
            return None
        response.raise_for_status()

        events = response.json()
        if not events:
            logger.info(f"Market '{slug}' not listed yet")
            self.not_listed = True
            return None

        return self._parse_event(slug, events[0])

    def _parse_event(self, slug: str, event: Dict[str, Any]) -> Optional[Market]:
        markets = event.get("markets") or []
        if not markets:
            return None

        market_data = markets[0]
        token_ids = market_data["clobTokenIds"]
        if isinstance(token_ids, str):
            token_ids = json.loads(token_ids)
        if len(token_ids) < 2:
            return None

        close_time = close_time_from_slug(slug) or _parse_end_date(
            market_data.get("endDate") or event.get("endDate")
        )
        if close_time is None:
            raise ValueError(f"Cannot determine close time for '{slug}'")

        title = event.get("title") or slug
        logger.info(f"Market found: {title}")

        return Market(
            slug=slug,
            title=title,
            yes_token=str(token_ids[0]),
            no_token=str(token_ids[1]),
            close_time=close_time,
        )

    async def close(self) -> None:
        await self.session.aclose()
