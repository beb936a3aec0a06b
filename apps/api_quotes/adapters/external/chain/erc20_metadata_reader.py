import asyncio
import logging
from typing import Dict, Optional

from web3 import AsyncWeb3, Web3

from ....core.services.token_service import TokenMetadataProvider
from .abis import ABI_ERC20

DEFAULT_DECIMALS = 18


class Erc20MetadataReader(TokenMetadataProvider):
    """
    Reads ERC20 decimals() once per token and memoizes it.

    Configured overrides win over the chain. A failing read falls back to 18
    and is not memoized, so the next request retries.
    """

    def __init__(
        self,
        w3: Optional[AsyncWeb3],
        overrides: Optional[Dict[str, int]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.w3 = w3
        self._known: Dict[str, int] = {k.lower(): int(v) for k, v in (overrides or {}).items()}
        self._lock = asyncio.Lock()
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    async def decimals(self, token: str) -> int:
        key = token.lower()
        if key in self._known:
            return self._known[key]
        if self.w3 is None:
            self._logger.warning("no RPC configured, assuming %s decimals for %s", DEFAULT_DECIMALS, token)
            return DEFAULT_DECIMALS
        try:
            erc = self.w3.eth.contract(address=Web3.to_checksum_address(token), abi=ABI_ERC20)
            dec = int(await erc.functions.decimals().call())
        except Exception as exc:
            self._logger.warning("decimals() failed for %s, assuming %s: %s", token, DEFAULT_DECIMALS, exc)
            return DEFAULT_DECIMALS
        async with self._lock:
            self._known[key] = dec
        return dec
