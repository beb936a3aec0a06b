import logging
from typing import Callable, Optional

from ..domain.entities.quote_entity import QuoteEntity
from ..domain.enums.quote_enums import QuoteStatus
from ..domain.exceptions import QuoteExpired, QuoteNotActive
from ..repositories.quote_repository import QuoteRepository
from ..services.time_utils import now_ms
from .get_quote_use_case import GetQuoteUseCase


class MarkQuoteUsedUseCase:
    """
    Consume a quote for a swap: ACTIVE -> USED, at most once.

    Calling it again on a USED quote is a no-op that returns the stored quote
    (the first swap_id is kept).
    """

    def __init__(
        self,
        quote_repo: QuoteRepository,
        clock: Callable[[], int] = now_ms,
        logger: Optional[logging.Logger] = None,
    ):
        self._quotes = quote_repo
        self._clock = clock
        self._reader = GetQuoteUseCase(quote_repo, clock=clock)
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    async def execute(self, quote_id: str, swap_id: Optional[str] = None) -> QuoteEntity:
        quote = await self._reader.load(quote_id)
        if quote.status == QuoteStatus.USED:
            return quote
        if quote.status == QuoteStatus.EXPIRED:
            raise QuoteExpired(quote_id, quote.expires_at)
        if quote.status != QuoteStatus.ACTIVE:
            raise QuoteNotActive(quote_id, quote.status.value)

        updated = await self._quotes.transition(
            quote_id,
            QuoteStatus.ACTIVE,
            QuoteStatus.USED,
            {"swap_id": swap_id, "used_at": self._clock()},
        )
        if updated is not None:
            self._logger.info("quote %s used by swap %s", quote_id, swap_id)
            return updated

        # lost a race against another consumer / the sweep
        current = await self._reader.load(quote_id)
        if current.status == QuoteStatus.USED:
            return current
        if current.status == QuoteStatus.EXPIRED:
            raise QuoteExpired(quote_id, current.expires_at)
        raise QuoteNotActive(quote_id, current.status.value)
