import asyncio
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from ..domain.entities.route_entity import OracleResult, RouteCandidate, RouteEvaluation
from ..domain.enums.quote_enums import QuoteMode
from ..domain.exceptions import NoRouteFound, OracleTransientError


class QuotingOracle(ABC):
    """
    Read-only pricing collaborator (Uniswap V3 QuoterV2 in production).
    Implementations must never raise for a per-candidate failure; they
    return OracleResult.failure(...) instead.
    """

    @abstractmethod
    async def quote(
        self,
        candidate: RouteCandidate,
        amount: int,
        mode: QuoteMode,
        sqrt_price_limit_x96: int = 0,
    ) -> OracleResult:
        raise NotImplementedError


class RouteEvaluationService:
    """
    Fans out one oracle call per candidate concurrently and waits for all of
    them to settle. Failing candidates are dropped; only when nothing is left
    does the batch fail with NoRouteFound.
    """

    def __init__(
        self,
        oracle: QuotingOracle,
        call_timeout_sec: float = 8.0,
        logger: Optional[logging.Logger] = None,
    ):
        self._oracle = oracle
        self._timeout = call_timeout_sec
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    async def _evaluate_one(
        self,
        candidate: RouteCandidate,
        amount: int,
        mode: QuoteMode,
        sqrt_price_limit_x96: int,
    ) -> OracleResult:
        try:
            return await asyncio.wait_for(
                self._oracle.quote(candidate, amount, mode, sqrt_price_limit_x96),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            return OracleResult.failure(f"quoter timeout after {self._timeout}s", transient=True)
        except OracleTransientError as exc:
            return OracleResult.failure(exc.msg, transient=True)
        except Exception as exc:
            # a misbehaving oracle must not sink the whole batch
            return OracleResult.failure(f"oracle error: {exc}", transient=True)

    async def evaluate(
        self,
        candidates: Sequence[RouteCandidate],
        amount: int,
        mode: QuoteMode,
        sqrt_price_limit_x96: int = 0,
    ) -> List[RouteEvaluation]:
        """
        :param amount: raw amount in (EXACT_IN) or desired raw amount out (EXACT_OUT).
        :return: successful evaluations in candidate generation order.
        :raises NoRouteFound: when every candidate failed or returned zero.
        """
        if not candidates:
            raise NoRouteFound(0)

        results = await asyncio.gather(*[
            self._evaluate_one(c, int(amount), mode, int(sqrt_price_limit_x96 or 0))
            for c in candidates
        ])

        evaluations: List[RouteEvaluation] = []
        last_error = None
        for candidate, res in zip(candidates, results):
            if res.ok:
                evaluations.append(RouteEvaluation(
                    candidate=candidate, amount=res.amount, gas_estimate=res.gas_estimate,
                ))
                continue
            last_error = res.error
            if res.transient:
                self._logger.warning(
                    "candidate #%s (%s) dropped, transient oracle error: %s",
                    candidate.index, candidate.path_tokens(), res.error,
                )
            else:
                self._logger.debug(
                    "candidate #%s (%s) has no route: %s",
                    candidate.index, candidate.path_tokens(), res.error,
                )

        if not evaluations:
            raise NoRouteFound(len(candidates), last_error)

        self._logger.debug("evaluated %s candidates, %s priced", len(candidates), len(evaluations))
        return evaluations
