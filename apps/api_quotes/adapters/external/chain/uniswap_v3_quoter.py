import logging
from typing import Optional

from web3 import AsyncWeb3, Web3
from web3.exceptions import ContractLogicError

from ....core.domain.entities.route_entity import OracleResult, RouteCandidate
from ....core.domain.enums.quote_enums import QuoteMode, RouteKind
from ....core.domain.exceptions import OracleTransientError
from ....core.services.path_encoder import encode_path
from ....core.services.route_evaluation_service import QuotingOracle
from .abis import ABI_QUOTER_V2


class UniswapV3QuoterOracle(QuotingOracle):
    """
    QuoterV2 over eth_call (never sends a transaction).

    single hop -> quoteExactInputSingle / quoteExactOutputSingle
    multi hop  -> quoteExactInput(path) / quoteExactOutput(reversed path)

    A revert means the pool does not exist or cannot fill the amount, so it is
    reported as a definitive failure. Anything else (RPC, decode, network) is
    transient.
    """

    def __init__(self, w3: AsyncWeb3, quoter_address: str, logger: Optional[logging.Logger] = None):
        self.w3 = w3
        self.quoter_address = Web3.to_checksum_address(quoter_address)
        self._quoter = w3.eth.contract(address=self.quoter_address, abi=ABI_QUOTER_V2)
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_rpc(cls, rpc_url: str, quoter_address: str) -> "UniswapV3QuoterOracle":
        return cls(AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url)), quoter_address)

    async def quote(
        self,
        candidate: RouteCandidate,
        amount: int,
        mode: QuoteMode,
        sqrt_price_limit_x96: int = 0,
    ) -> OracleResult:
        try:
            if candidate.kind == RouteKind.SINGLE:
                fn = self._single(candidate, int(amount), mode, int(sqrt_price_limit_x96 or 0))
            else:
                fn = self._multi(candidate, int(amount), mode)
            res = await self._call(fn)
        except ContractLogicError as exc:
            return OracleResult.failure(f"quoter reverted: {exc}")
        except OracleTransientError as exc:
            self._logger.debug("quoter call failed for %s: %s", candidate.path_tokens(), exc.msg)
            return OracleResult.failure(exc.msg, transient=True)

        # (amount, sqrtPriceX96After(s), initializedTicksCrossed(s), gasEstimate)
        return OracleResult.success(int(res[0]), int(res[3]))

    @staticmethod
    async def _call(fn):
        try:
            res = await fn.call()
        except ContractLogicError:
            raise
        except Exception as exc:
            raise OracleTransientError(f"quoter call failed: {exc}") from exc
        if len(res) < 4:
            raise OracleTransientError(f"unexpected quoter response: {res!r}")
        return res

    def _single(self, candidate: RouteCandidate, amount: int, mode: QuoteMode, sqrt_limit: int):
        hop = candidate.hops[0]
        params = {
            "tokenIn": Web3.to_checksum_address(hop.token_in),
            "tokenOut": Web3.to_checksum_address(hop.token_out),
            "fee": int(hop.fee),
            "sqrtPriceLimitX96": sqrt_limit,
        }
        if mode == QuoteMode.EXACT_IN:
            params["amountIn"] = amount
            return self._quoter.functions.quoteExactInputSingle(params)
        params["amount"] = amount
        return self._quoter.functions.quoteExactOutputSingle(params)

    def _multi(self, candidate: RouteCandidate, amount: int, mode: QuoteMode):
        if mode == QuoteMode.EXACT_IN:
            return self._quoter.functions.quoteExactInput(encode_path(candidate.hops), amount)
        return self._quoter.functions.quoteExactOutput(encode_path(candidate.hops, reverse=True), amount)
