from typing import Optional

from hexbytes import HexBytes
from web3 import Web3

from ....core.domain.entities.quote_entity import QuoteEntity, SwapTransaction
from ....core.domain.enums.quote_enums import QuoteMode
from ....core.services.swap_calldata_service import SwapCalldataBuilder
from .abis import ABI_SWAP_ROUTER


class UniswapV3SwapRouter(SwapCalldataBuilder):
    """
    SwapRouter calldata for a stored quote.

    single hop -> exactInputSingle / exactOutputSingle
    multi hop  -> exactInput(path) / exactOutput(path), with the quote's path
                  (already reversed for EXACT_OUT)

    The slippage bound of the quote becomes amountOutMinimum / amountInMaximum.
    """

    def __init__(self, router_address: str, w3: Optional[Web3] = None):
        self.router_address = Web3.to_checksum_address(router_address)
        # encoding only: a provider-less Web3 is enough
        self._router = (w3 or Web3()).eth.contract(address=self.router_address, abi=ABI_SWAP_ROUTER)

    def build(self, quote: QuoteEntity, recipient: str, deadline: int) -> SwapTransaction:
        recipient = Web3.to_checksum_address(recipient)
        method, params = self._params(quote, recipient, int(deadline))
        data = self._router.encode_abi(method, args=[params])
        return SwapTransaction(
            quote_id=quote.quote_id,
            chain_id=quote.chain_id,
            to=self.router_address,
            data=data,
            method=method,
            recipient=recipient,
            deadline=int(deadline),
            amount_in=quote.amount_in,
            amount_out=quote.amount_out,
            amount_out_minimum=quote.amount_out_minimum,
            amount_in_maximum=quote.amount_in_maximum,
        )

    @staticmethod
    def _params(quote: QuoteEntity, recipient: str, deadline: int):
        exact_in = QuoteMode(quote.mode) == QuoteMode.EXACT_IN
        if len(quote.route) == 1:
            hop = quote.route[0]
            params = {
                "tokenIn": Web3.to_checksum_address(hop.token_in),
                "tokenOut": Web3.to_checksum_address(hop.token_out),
                "fee": int(hop.fee),
                "recipient": recipient,
                "deadline": deadline,
                "sqrtPriceLimitX96": 0,
            }
            if exact_in:
                params["amountIn"] = int(quote.amount_in)
                params["amountOutMinimum"] = int(quote.amount_out_minimum)
                return "exactInputSingle", params
            params["amountOut"] = int(quote.amount_out)
            params["amountInMaximum"] = int(quote.amount_in_maximum)
            return "exactOutputSingle", params

        params = {"path": HexBytes(quote.path), "recipient": recipient, "deadline": deadline}
        if exact_in:
            params["amountIn"] = int(quote.amount_in)
            params["amountOutMinimum"] = int(quote.amount_out_minimum)
            return "exactInput", params
        params["amountOut"] = int(quote.amount_out)
        params["amountInMaximum"] = int(quote.amount_in_maximum)
        return "exactOutput", params
