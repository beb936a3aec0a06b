# apps/api_quotes/core/domain/entities/route_entity.py

from dataclasses import dataclass
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from ..enums.quote_enums import RouteKind


class RouteHop(BaseModel):
    """
    One pool traversal: token_in -> token_out through the fee tier `fee`.
    Persisted inside the quote document, so it is a pydantic model.
    """
    model_config = ConfigDict(frozen=True)

    token_in: str
    token_out: str
    fee: int


@dataclass(frozen=True)
class RouteCandidate:
    """
    Transient execution path produced by the candidate generator.

    `index` is the generation order and is the tie-break of the selector:
    single-hop before multi-hop, lower fee tiers before higher.
    """
    index: int
    kind: RouteKind
    hops: Tuple[RouteHop, ...]

    @property
    def token_in(self) -> str:
        return self.hops[0].token_in

    @property
    def token_out(self) -> str:
        return self.hops[-1].token_out

    def path_tokens(self) -> List:
        """
        Flattened [token, fee, token, fee, ..., token] sequence.
        """
        out: List = [self.hops[0].token_in]
        for hop in self.hops:
            out.extend([hop.fee, hop.token_out])
        return out


@dataclass(frozen=True)
class OracleResult:
    """
    Outcome of one quoter call. Either ok (amount > 0) or an error with a reason.

    transient=True marks non-definitive failures (network, timeout, decode);
    a revert from the quoter (no pool / no liquidity) is definitive.
    """
    amount: int = 0
    gas_estimate: int = 0
    error: Optional[str] = None
    transient: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and self.amount > 0

    @classmethod
    def success(cls, amount: int, gas_estimate: int = 0) -> "OracleResult":
        if int(amount) <= 0:
            return cls(error="quoter returned 0")
        return cls(amount=int(amount), gas_estimate=int(gas_estimate))

    @classmethod
    def failure(cls, reason: str, transient: bool = False) -> "OracleResult":
        return cls(error=reason, transient=transient)


@dataclass(frozen=True)
class RouteEvaluation:
    """
    A candidate that the oracle priced successfully.

    amount is amount_out for EXACT_IN and the required amount_in for EXACT_OUT.
    """
    candidate: RouteCandidate
    amount: int
    gas_estimate: int = 0
