from abc import ABC, abstractmethod

from ..domain.entities.quote_entity import QuoteEntity, SwapTransaction


class SwapCalldataBuilder(ABC):
    """
    Turns a priced quote into an unsigned router transaction.
    Pure encoding: implementations never touch the network.
    """

    @abstractmethod
    def build(self, quote: QuoteEntity, recipient: str, deadline: int) -> SwapTransaction:
        raise NotImplementedError
