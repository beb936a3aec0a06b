import asyncio
import logging
import secrets
import time
from decimal import Decimal
from typing import Callable, Dict, Optional, Sequence

from pydantic import BaseModel

from ..domain.entities.quote_entity import QuoteCommand, QuoteEntity, QuoteRequestLog
from ..domain.enums.quote_enums import QuoteMode, QuoteStatus
from ..domain.exceptions import InvalidInput, PersistenceError, QuoteEngineError
from ..repositories.quote_repository import QuoteRepository
from ..repositories.quote_request_repository import QuoteRequestRepository
from ..services.path_encoder import encode_path
from ..services.price_impact_service import PriceImpactService
from ..services.quote_cache_service import QuoteCacheService, quote_fingerprint
from ..services.route_candidate_service import RouteCandidateService
from ..services.route_evaluation_service import RouteEvaluationService
from ..services.route_selection_service import select_best_route
from ..services.slippage_service import slippage_bound, slippage_pct_to_bps
from ..services.time_utils import now_ms
from ..services.token_service import TokenMetadataProvider, TokenValidator
from ..services.units_service import from_raw, to_decimal, to_raw


class QuoteResult(BaseModel):
    quote: QuoteEntity
    from_cache: bool = False
    request_id: Optional[str] = None


class GenerateQuoteUseCase:
    """
    End-to-end quote generation:

      validate -> log request -> cache lookup -> candidates -> concurrent
      oracle fan-out -> best route -> slippage bound -> price impact ->
      persist quote -> cache -> complete request log.

    Validation errors fail fast before any oracle call. Persistence of the
    quote, cache entry and request log is best-effort: failures are logged
    and the computed quote is still returned.
    """

    def __init__(
        self,
        *,
        chain_id: int,
        token_validator: TokenValidator,
        token_metadata: TokenMetadataProvider,
        candidate_service: RouteCandidateService,
        evaluation_service: RouteEvaluationService,
        price_impact_service: PriceImpactService,
        cache_service: QuoteCacheService,
        quote_repo: QuoteRepository,
        request_repo: QuoteRequestRepository,
        valid_fees: Sequence[int] = (500, 3000, 10000),
        default_fee: int = 3000,
        default_ttl_sec: int = 600,
        max_ttl_sec: int = 24 * 60 * 60,
        clock: Callable[[], int] = now_ms,
        logger: Optional[logging.Logger] = None,
    ):
        self._chain_id = int(chain_id)
        self._tokens = token_validator
        self._metadata = token_metadata
        self._candidates = candidate_service
        self._evaluator = evaluation_service
        self._impact = price_impact_service
        self._cache = cache_service
        self._quotes = quote_repo
        self._requests = request_repo
        self._valid_fees = tuple(valid_fees)
        self._default_fee = int(default_fee)
        self._default_ttl = int(default_ttl_sec)
        self._max_ttl = int(max_ttl_sec)
        self._clock = clock
        self._logger = logger or logging.getLogger(self.__class__.__name__)
        self._background: set = set()

    @property
    def chain_id(self) -> int:
        return self._chain_id

    # ---------- request log (best-effort) ----------

    async def _log_request(self, cmd: QuoteCommand) -> Optional[str]:
        request_id = f"req_{secrets.token_hex(8)}"
        r = cmd.requester
        log = QuoteRequestLog(
            request_id=request_id,
            chain_id=self._chain_id,
            token_in=(cmd.token_in or "").strip().lower(),
            token_out=(cmd.token_out or "").strip().lower(),
            amount_in=cmd.amount if cmd.mode == QuoteMode.EXACT_IN else None,
            amount_out=cmd.amount if cmd.mode == QuoteMode.EXACT_OUT else None,
            mode=cmd.mode,
            fee=cmd.fee,
            slippage_pct=cmd.slippage_pct,
            ip_address=r.ip_address,
            user_agent=r.user_agent,
            user_id=r.user_id,
            user_address=r.user_address.lower() if r.user_address else None,
            rate_limit_key=r.rate_limit_key,
            created_at=self._clock(),
        )
        try:
            await self._requests.create(log)
        except PersistenceError as exc:
            self._logger.error("quote request logging failed: %s", exc)
            return None
        return request_id

    async def _complete_request(self, request_id: Optional[str], started: float, fields: Dict) -> None:
        if not request_id:
            return
        fields = {
            **fields,
            "response_time_ms": int((time.perf_counter() - started) * 1000),
            "completed_at": self._clock(),
        }
        try:
            await self._requests.complete(request_id, fields)
        except PersistenceError as exc:
            self._logger.error("quote request update failed for %s: %s", request_id, exc)

    def _complete_in_background(self, request_id: Optional[str], started: float, fields: Dict) -> None:
        task = asyncio.get_running_loop().create_task(self._complete_request(request_id, started, fields))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ---------- validation ----------

    def _ttl_ms(self, ttl_sec: Optional[int]) -> int:
        ttl = self._default_ttl if not ttl_sec else int(ttl_sec)
        return min(max(1, ttl), self._max_ttl) * 1000

    def _validate(self, cmd: QuoteCommand):
        if not cmd.token_in or not cmd.token_out or not cmd.amount:
            raise InvalidInput("token_in, token_out and amount are required")
        t_in = self._tokens.validate(cmd.token_in)
        t_out = self._tokens.validate(cmd.token_out)
        if t_in == t_out:
            raise InvalidInput("token_in and token_out must differ")
        if to_decimal(cmd.amount) <= 0:
            raise InvalidInput("amount must be > 0")
        if cmd.fee is not None and int(cmd.fee) not in self._valid_fees:
            raise InvalidInput(f"fee must be one of {list(self._valid_fees)}")
        bps = slippage_pct_to_bps(cmd.slippage_pct)
        return t_in, t_out, bps

    # ---------- cache ----------

    async def _cached_quote(self, fingerprint: str, bps: int) -> Optional[QuoteEntity]:
        """
        Cached quote for the request, re-read from the quote store: a quote
        used, cancelled or expired since it was cached is evicted instead of
        being handed out again.
        """
        cached = await self._cache.lookup(fingerprint, bps)
        if cached is None:
            return None
        try:
            stored = await self._quotes.get(cached.quote_id)
        except PersistenceError as exc:
            self._logger.error("cached quote %s could not be re-read: %s", cached.quote_id, exc)
            return None
        if stored is None or stored.status != QuoteStatus.ACTIVE or stored.is_expired(self._clock()):
            await self._cache.evict(fingerprint)
            return None
        return stored

    # ---------- main flow ----------

    async def execute(self, cmd: QuoteCommand) -> QuoteResult:
        started = time.perf_counter()
        request_id = await self._log_request(cmd)
        try:
            result = await self._generate(cmd, request_id, started)
        except QuoteEngineError as exc:
            await self._complete_request(request_id, started, {"success": False, "error_message": exc.msg})
            raise
        except asyncio.CancelledError:
            self._complete_in_background(
                request_id, started, {"success": False, "error_message": "request cancelled or timed out"}
            )
            raise
        except Exception as exc:
            self._logger.exception("quote generation failed: %s", exc)
            await self._complete_request(request_id, started, {"success": False, "error_message": str(exc)})
            raise
        return result

    async def _generate(self, cmd: QuoteCommand, request_id: Optional[str], started: float) -> QuoteResult:
        mode = QuoteMode(cmd.mode)
        t_in, t_out, bps = self._validate(cmd)

        dec_in, dec_out = await asyncio.gather(
            self._metadata.decimals(t_in),
            self._metadata.decimals(t_out),
        )
        fixed_raw = to_raw(cmd.amount, dec_in if mode == QuoteMode.EXACT_IN else dec_out)

        fee_key = int(cmd.fee) if cmd.fee is not None else self._default_fee
        fingerprint = quote_fingerprint(self._chain_id, t_in, t_out, fee_key, fixed_raw, mode)

        cached = await self._cached_quote(fingerprint, bps)
        if cached is not None:
            await self._complete_request(request_id, started, {
                "success": True, "cache_hit": True, "quote_id": cached.quote_id,
            })
            return QuoteResult(quote=cached, from_cache=True, request_id=request_id)

        candidates = self._candidates.generate(t_in, t_out)
        evaluations = await self._evaluator.evaluate(
            candidates, fixed_raw, mode, int(cmd.sqrt_price_limit_x96 or 0)
        )
        best = select_best_route(evaluations, mode)

        if mode == QuoteMode.EXACT_IN:
            amount_in_raw, amount_out_raw = fixed_raw, best.amount
        else:
            amount_in_raw, amount_out_raw = best.amount, fixed_raw
        bound = slippage_bound(best.amount, bps, mode)

        price_impact = await self._impact.estimate(
            t_in,
            t_out,
            Decimal(from_raw(amount_in_raw, dec_in)),
            Decimal(from_raw(amount_out_raw, dec_out)),
            self._chain_id,
        )

        now = self._clock()
        quote = QuoteEntity(
            quote_id=f"q_{secrets.token_hex(8)}",
            chain_id=self._chain_id,
            token_in=t_in,
            token_out=t_out,
            amount_in=str(amount_in_raw),
            amount_out=str(amount_out_raw),
            decimals_in=int(dec_in),
            decimals_out=int(dec_out),
            mode=mode,
            route=list(best.candidate.hops),
            path=encode_path(best.candidate.hops, reverse=mode == QuoteMode.EXACT_OUT),
            slippage_bps=bps,
            amount_out_minimum=str(bound) if mode == QuoteMode.EXACT_IN else None,
            amount_in_maximum=str(bound) if mode == QuoteMode.EXACT_OUT else None,
            price_impact_pct=price_impact,
            estimated_gas=str(best.gas_estimate),
            created_at=now,
            expires_at=now + self._ttl_ms(cmd.ttl_sec),
        )

        try:
            await self._quotes.create(quote)
        except PersistenceError as exc:
            # an unstored quote cannot be used later, so it is not cached either
            self._logger.error("quote %s not persisted: %s", quote.quote_id, exc)
        else:
            await self._cache.store(fingerprint, quote)

        await self._complete_request(request_id, started, {
            "success": True, "cache_hit": False, "quote_id": quote.quote_id,
        })
        self._logger.info(
            "quote %s %s %s->%s route=%s amount_in=%s amount_out=%s",
            quote.quote_id, mode.value, t_in, t_out,
            best.candidate.path_tokens(), amount_in_raw, amount_out_raw,
        )
        return QuoteResult(quote=quote, from_cache=False, request_id=request_id)
