from typing import List, Sequence

from ..domain.entities.route_entity import RouteCandidate, RouteHop
from ..domain.enums.quote_enums import RouteKind


class RouteCandidateService:
    """
    Brute-force enumeration of execution paths:

      - one single-hop candidate per fee tier, and
      - one two-hop candidate per (anchor, fee_a, fee_b), skipping anchors
        equal to either endpoint.

    No viability filtering happens here; the evaluator drops what the
    quoter cannot price. Output order is the selector's tie-break order.
    """

    def __init__(self, fee_tiers: Sequence[int], anchors: Sequence[str]):
        self._fees = tuple(sorted(int(f) for f in fee_tiers))
        seen = set()
        self._anchors: List[str] = []
        for a in anchors:
            key = a.lower()
            if key not in seen:
                seen.add(key)
                self._anchors.append(key)

    @property
    def fee_tiers(self) -> tuple:
        return self._fees

    @property
    def anchors(self) -> List[str]:
        return list(self._anchors)

    def generate(self, token_in: str, token_out: str) -> List[RouteCandidate]:
        t_in, t_out = token_in.lower(), token_out.lower()
        candidates: List[RouteCandidate] = []

        for fee in self._fees:
            candidates.append(RouteCandidate(
                index=len(candidates),
                kind=RouteKind.SINGLE,
                hops=(RouteHop(token_in=t_in, token_out=t_out, fee=fee),),
            ))

        for mid in self._anchors:
            if mid in (t_in, t_out):
                continue
            for fee_a in self._fees:
                for fee_b in self._fees:
                    candidates.append(RouteCandidate(
                        index=len(candidates),
                        kind=RouteKind.MULTI,
                        hops=(
                            RouteHop(token_in=t_in, token_out=mid, fee=fee_a),
                            RouteHop(token_in=mid, token_out=t_out, fee=fee_b),
                        ),
                    ))
        return candidates
