import asyncio
import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Optional, Tuple

import httpx

from ....core.services.price_impact_service import PriceFeed

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"


class PriceFeedClient(PriceFeed):
    """
    USD prices for price-impact estimation.

    Resolution order:
      1) stable tokens -> 1
      2) in-process cache (PRICE_CACHE_TTL_SEC)
      3) CoinGecko token_price (only when an API key is configured)
      4) static fallback (WETH -> WETH_USD_FALLBACK)
      5) unknown -> Decimal(0)
    """

    def __init__(
        self,
        *,
        stable_tokens: Iterable[str] = (),
        weth_address: Optional[str] = None,
        weth_usd_fallback: float = 2000.0,
        api_key: str = "",
        platform: str = "ethereum",
        cache_ttl_sec: int = 30,
        timeout_sec: float = 5.0,
        base_url: str = COINGECKO_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._stables = {t.lower() for t in stable_tokens if t}
        self._fallback: Dict[str, Decimal] = {}
        if weth_address:
            self._fallback[weth_address.lower()] = Decimal(str(weth_usd_fallback))
        self._api_key = api_key
        self._platform = platform
        self._cache_ttl = float(cache_ttl_sec)
        self._timeout = timeout_sec
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._cache: Dict[Tuple[int, str], Tuple[float, Decimal]] = {}
        self._lock = asyncio.Lock()
        self._logger = logging.getLogger(self.__class__.__name__)

    async def get_price(self, token: str, chain_id: int) -> Decimal:
        key = token.lower()
        if key in self._stables:
            return Decimal(1)

        cache_key = (int(chain_id), key)
        async with self._lock:
            hit = self._cache.get(cache_key)
        if hit and time.monotonic() - hit[0] < self._cache_ttl:
            return hit[1]

        price = Decimal(0)
        if self._api_key:
            price = await self._coingecko_price(key)
        if price <= 0:
            price = self._fallback.get(key, Decimal(0))

        if price > 0:
            async with self._lock:
                self._cache[cache_key] = (time.monotonic(), price)
        return price

    async def _coingecko_price(self, token: str) -> Decimal:
        url = f"{self._base_url}/simple/token_price/{self._platform}"
        params = {"contract_addresses": token, "vs_currencies": "usd"}
        headers = {"x-cg-demo-api-key": self._api_key}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                r = await client.get(url, params=params, headers=headers)
                if r.status_code != 200:
                    self._logger.warning("coingecko price %s -> HTTP %s", token, r.status_code)
                    return Decimal(0)
                usd = (r.json().get(token) or {}).get("usd")
        except Exception as exc:
            self._logger.warning("coingecko price failed for %s: %s", token, exc)
            return Decimal(0)
        if usd is None:
            return Decimal(0)
        try:
            return Decimal(str(usd))
        except InvalidOperation:
            return Decimal(0)
