from abc import ABC, abstractmethod
from typing import Dict, List


class TokenValidator(ABC):
    """
    Allow-list collaborator.
    validate() returns the normalized (lowercase) address or raises
    InvalidInput (malformed) / TokenNotAllowed.
    """

    @abstractmethod
    def validate(self, address: str) -> str:
        raise NotImplementedError


class TokenMetadataProvider(ABC):
    """
    On-chain token metadata collaborator.
    """

    @abstractmethod
    async def decimals(self, token: str) -> int:
        raise NotImplementedError


class TokenRegistry(TokenValidator):
    """
    Allow-list that can be edited at runtime (permissionless listing).
    Seeded tokens are essential and cannot be removed.
    """

    @abstractmethod
    def add(self, address: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def remove(self, address: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def tokens(self) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def status(self) -> Dict:
        raise NotImplementedError
