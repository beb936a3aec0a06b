import logging
from typing import Callable, Optional

from web3 import Web3

from ..domain.entities.quote_entity import SwapTransaction
from ..domain.enums.quote_enums import QuoteStatus
from ..domain.exceptions import InvalidInput, QuoteNotActive
from ..repositories.quote_repository import QuoteRepository
from ..services.swap_calldata_service import SwapCalldataBuilder
from ..services.time_utils import now_ms
from .get_quote_use_case import GetQuoteUseCase


class PopulateSwapUseCase:
    """
    Build the unsigned router transaction for an ACTIVE quote.

    The quote is not consumed here: a populated transaction may never be
    signed. The caller reports the broadcast through MarkQuoteUsedUseCase.
    """

    def __init__(
        self,
        quote_repo: QuoteRepository,
        builder: SwapCalldataBuilder,
        default_deadline_sec: int = 600,
        max_deadline_sec: int = 24 * 60 * 60,
        clock: Callable[[], int] = now_ms,
        logger: Optional[logging.Logger] = None,
    ):
        self._reader = GetQuoteUseCase(quote_repo, clock=clock)
        self._builder = builder
        self._default_deadline = int(default_deadline_sec)
        self._max_deadline = int(max_deadline_sec)
        self._clock = clock
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    def _deadline(self, deadline_sec: Optional[int]) -> int:
        ttl = self._default_deadline if not deadline_sec else int(deadline_sec)
        ttl = min(max(1, ttl), self._max_deadline)
        return self._clock() // 1000 + ttl

    async def execute(self, quote_id: str, recipient: str, deadline_sec: Optional[int] = None) -> SwapTransaction:
        recipient = (recipient or "").strip()
        if not Web3.is_address(recipient):
            raise InvalidInput(f"Invalid recipient address: {recipient}")

        quote = await self._reader.execute(quote_id)
        if quote.status != QuoteStatus.ACTIVE:
            raise QuoteNotActive(quote_id, quote.status.value)

        tx = self._builder.build(quote, recipient, self._deadline(deadline_sec))
        self._logger.info("populated %s for quote %s (recipient=%s)", tx.method, quote_id, tx.recipient)
        return tx
