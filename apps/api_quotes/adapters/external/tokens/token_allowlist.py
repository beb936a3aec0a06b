import logging
from typing import Dict, Iterable, List, Optional, Set

from web3 import Web3

from ....core.domain.exceptions import InvalidInput, TokenNotAllowed
from ....core.services.token_service import TokenRegistry


class TokenAllowlist(TokenRegistry):
    """
    In-process token registry.

    Seeded tokens (anchors, ALLOWED_TOKENS) are essential and stay listed.
    Tokens added at runtime are dynamic and can be removed again. With
    allow_any=True every well-formed address passes (useful on testnets).
    """

    def __init__(
        self,
        tokens: Iterable[str] = (),
        allow_any: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        self._essential: Set[str] = {self.normalize(t) for t in tokens}
        self._dynamic: Set[str] = set()
        self._allow_any = bool(allow_any)
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    @staticmethod
    def normalize(address: str) -> str:
        addr = (address or "").strip().lower()
        if not Web3.is_address(addr):
            raise InvalidInput(f"Invalid token address: {address}")
        return addr

    def is_allowed(self, address: str) -> bool:
        addr = self.normalize(address)
        return self._allow_any or addr in self._essential or addr in self._dynamic

    def validate(self, address: str) -> str:
        addr = self.normalize(address)
        if not self.is_allowed(addr):
            raise TokenNotAllowed(addr)
        return addr

    def add(self, address: str) -> str:
        addr = self.normalize(address)
        if addr not in self._essential and addr not in self._dynamic:
            self._dynamic.add(addr)
            self._logger.info("token %s added to allow-list", addr)
        return addr

    def remove(self, address: str) -> bool:
        addr = self.normalize(address)
        if addr in self._essential:
            raise InvalidInput(f"Token {addr} is essential and cannot be removed")
        if addr in self._dynamic:
            self._dynamic.discard(addr)
            self._logger.info("token %s removed from allow-list", addr)
            return True
        return False

    def tokens(self) -> List[str]:
        return sorted(self._essential | self._dynamic)

    def status(self) -> Dict:
        return {
            "essential_tokens": len(self._essential),
            "dynamic_tokens": len(self._dynamic),
            "total_tokens": len(self._essential | self._dynamic),
            "allow_any": self._allow_any,
        }
