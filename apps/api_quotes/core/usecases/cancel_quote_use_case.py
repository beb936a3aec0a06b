from typing import Callable

from ..domain.entities.quote_entity import QuoteEntity
from ..domain.enums.quote_enums import QuoteStatus
from ..domain.exceptions import QuoteNotActive
from ..repositories.quote_repository import QuoteRepository
from ..services.time_utils import now_ms
from .get_quote_use_case import GetQuoteUseCase


class CancelQuoteUseCase:
    """
    ACTIVE -> CANCELLED. Cancelling an already cancelled quote is a no-op.
    """

    def __init__(self, quote_repo: QuoteRepository, clock: Callable[[], int] = now_ms):
        self._quotes = quote_repo
        self._reader = GetQuoteUseCase(quote_repo, clock=clock)

    async def execute(self, quote_id: str) -> QuoteEntity:
        quote = await self._reader.load(quote_id)
        if quote.status == QuoteStatus.CANCELLED:
            return quote
        if quote.status != QuoteStatus.ACTIVE:
            raise QuoteNotActive(quote_id, quote.status.value)

        updated = await self._quotes.transition(quote_id, QuoteStatus.ACTIVE, QuoteStatus.CANCELLED)
        if updated is not None:
            return updated
        current = await self._reader.load(quote_id)
        if current.status == QuoteStatus.CANCELLED:
            return current
        raise QuoteNotActive(quote_id, current.status.value)
