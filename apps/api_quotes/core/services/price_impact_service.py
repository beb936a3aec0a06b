import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

UNKNOWN_IMPACT = "0"


class PriceFeed(ABC):
    """
    USD price collaborator. Returns Decimal(0) when the price is unknown.
    """

    @abstractmethod
    async def get_price(self, token: str, chain_id: int) -> Decimal:
        raise NotImplementedError


def estimate_price_impact(
    amount_in_human: Decimal,
    amount_out_human: Decimal,
    price_in_usd: Decimal,
    price_out_usd: Decimal,
) -> str:
    """
    impact = max(0, (expected_out - actual_out) / expected_out * 100)
    where expected_out = amount_in * price_in / price_out.

    Advisory only: unknown prices give "0".
    """
    price_in_usd = Decimal(price_in_usd or 0)
    price_out_usd = Decimal(price_out_usd or 0)
    if price_in_usd <= 0 or price_out_usd <= 0:
        return UNKNOWN_IMPACT
    expected_out = Decimal(amount_in_human) * price_in_usd / price_out_usd
    if expected_out <= 0:
        return UNKNOWN_IMPACT
    impact = (expected_out - Decimal(amount_out_human)) / expected_out * 100
    impact = max(Decimal(0), impact)
    return f"{impact:.4f}"


class PriceImpactService:
    """
    Looks up both USD prices and delegates to estimate_price_impact.
    Any price-feed failure degrades to the unknown sentinel.
    """

    def __init__(self, price_feed: PriceFeed, logger: Optional[logging.Logger] = None):
        self._feed = price_feed
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    async def estimate(
        self,
        token_in: str,
        token_out: str,
        amount_in_human: Decimal,
        amount_out_human: Decimal,
        chain_id: int,
    ) -> str:
        try:
            price_in = await self._feed.get_price(token_in, chain_id)
            price_out = await self._feed.get_price(token_out, chain_id)
        except Exception as exc:
            self._logger.warning("price impact skipped, price feed error: %s", exc)
            return UNKNOWN_IMPACT
        return estimate_price_impact(amount_in_human, amount_out_human, price_in, price_out)
