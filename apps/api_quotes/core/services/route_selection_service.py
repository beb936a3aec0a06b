from typing import Sequence

from ..domain.entities.route_entity import RouteEvaluation
from ..domain.enums.quote_enums import QuoteMode
from ..domain.exceptions import NoRouteFound


def select_best_route(evaluations: Sequence[RouteEvaluation], mode: QuoteMode) -> RouteEvaluation:
    """
    Pure reduction over completed evaluations.

    EXACT_IN  -> highest amount out
    EXACT_OUT -> lowest amount in
    Ties go to the lowest generation index, so the result does not depend on
    the order in which oracle calls completed.
    """
    if not evaluations:
        raise NoRouteFound(0)
    if mode == QuoteMode.EXACT_IN:
        return min(evaluations, key=lambda e: (-e.amount, e.candidate.index))
    return min(evaluations, key=lambda e: (e.amount, e.candidate.index))
