import logging
from typing import Callable, Optional

from ..domain.entities.quote_entity import QuoteEntity
from ..domain.enums.quote_enums import QuoteStatus
from ..domain.exceptions import PersistenceError, QuoteExpired, QuoteNotFound
from ..repositories.quote_repository import QuoteRepository
from ..services.time_utils import now_ms


class GetQuoteUseCase:
    """
    Read a stored quote, enforcing expiry lazily: an ACTIVE quote read after
    its expires_at is flipped to EXPIRED and reported as expired.
    """

    def __init__(
        self,
        quote_repo: QuoteRepository,
        clock: Callable[[], int] = now_ms,
        logger: Optional[logging.Logger] = None,
    ):
        self._quotes = quote_repo
        self._clock = clock
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    async def load(self, quote_id: str) -> QuoteEntity:
        """
        Fetch the quote and apply lazy expiry, without raising on EXPIRED.
        """
        quote = await self._quotes.get(quote_id)
        if quote is None:
            raise QuoteNotFound(quote_id)
        if quote.status == QuoteStatus.ACTIVE and quote.is_expired(self._clock()):
            try:
                updated = await self._quotes.transition(quote_id, QuoteStatus.ACTIVE, QuoteStatus.EXPIRED)
            except PersistenceError as exc:
                self._logger.warning("lazy expiry of %s not persisted: %s", quote_id, exc)
                updated = None
            quote = updated or quote.model_copy(update={"status": QuoteStatus.EXPIRED})
        return quote

    async def execute(self, quote_id: str) -> QuoteEntity:
        quote = await self.load(quote_id)
        if quote.status == QuoteStatus.EXPIRED:
            raise QuoteExpired(quote_id, quote.expires_at)
        return quote
