import os
from dotenv import load_dotenv
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List

load_dotenv()

# QuoterV2 deployments per chain id
UNI_V3_QUOTERS: Dict[int, str] = {
    1: "0x61fFE014bA17989E743c5F6cB21bF9697530B21e",         # Ethereum mainnet
    10: "0x61fFE014bA17989E743c5F6cB21bF9697530B21e",        # Optimism
    137: "0x61fFE014bA17989E743c5F6cB21bF9697530B21e",       # Polygon
    42161: "0x61fFE014bA17989E743c5F6cB21bF9697530B21e",     # Arbitrum One
    8453: "0x3d4e44Eb1374240CE5F1B871ab261CD16335B76a",      # Base
    11155111: "0xEd1f6473345F45b75F8179591dd5bA1888cf2FB3",  # Sepolia
}

# SwapRouter (deadline in the params struct) deployments per chain id
UNI_V3_SWAP_ROUTERS: Dict[int, str] = {
    1: "0xE592427A0AEce92De3Edee1F18E0157C05861564",
    10: "0xE592427A0AEce92De3Edee1F18E0157C05861564",
    137: "0xE592427A0AEce92De3Edee1F18E0157C05861564",
    42161: "0xE592427A0AEce92De3Edee1F18E0157C05861564",
    11155111: "0xE592427A0AEce92De3Edee1F18E0157C05861564",
}

VALID_FEES = (500, 3000, 10000)


def _csv(raw: str | None) -> List[str]:
    if not raw:
        return []
    return [p.strip() for p in raw.split(",") if p.strip()]


def _decimals_map(raw: str | None) -> Dict[str, int]:
    """
    TOKEN_DECIMALS="0xabc...:6,0xdef...:18"
    """
    out: Dict[str, int] = {}
    for item in _csv(raw):
        addr, _, dec = item.partition(":")
        if addr and dec:
            out[addr.strip().lower()] = int(dec)
    return out


def _bool(raw: str | None, default: bool = False) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    # chain
    RPC_URL_DEFAULT: str
    CHAIN_ID: int
    UNI_V3_QUOTER: str
    DEFAULT_SWAP_POOL_FEE: int
    UNI_V3_SWAP_ROUTER: str = ""

    # anchors / well-known tokens (Sepolia defaults)
    WETH_ADDRESS: str = "0x7b79995e5f793A07Bc00c21412e50Ecae098E7f9"
    USDC_ADDRESS: str = "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238"
    USDT_ADDRESS: str = "0xaA8E23Fb1079EA71e0a56F48a2aA51851D8433D0"
    ANCHOR_TOKENS: List[str] = field(default_factory=list)

    # token allow-list / metadata
    ALLOWED_TOKENS: List[str] = field(default_factory=list)
    ALLOW_ANY_TOKEN: bool = False
    TOKEN_DECIMALS: Dict[str, int] = field(default_factory=dict)

    # quote lifecycle
    QUOTE_DEFAULT_TTL_SEC: int = 600
    QUOTE_MAX_TTL_SEC: int = 24 * 60 * 60
    QUOTE_CACHE_TTL_SEC: int = 300
    QUOTE_SWEEP_INTERVAL_SEC: int = 60
    QUOTE_TIMEOUT_SEC: float = 20.0
    ORACLE_CALL_TIMEOUT_SEC: float = 8.0

    # storage
    STORAGE_BACKEND: str = "mongodb"          # mongodb | memory
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "quotes_db"

    # pricing
    COINGECKO_API_KEY: str = ""
    COINGECKO_PLATFORM: str = "ethereum"
    WETH_USD_FALLBACK: float = 2000.0
    PRICE_CACHE_TTL_SEC: int = 30

    # generic
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    def anchors(self) -> List[str]:
        """Anchor tokens for two-hop routes, in routing order."""
        if self.ANCHOR_TOKENS:
            return list(self.ANCHOR_TOKENS)
        return [a for a in (self.WETH_ADDRESS, self.USDC_ADDRESS, self.USDT_ADDRESS) if a]

    def stable_tokens(self) -> List[str]:
        return [a.lower() for a in (self.USDC_ADDRESS, self.USDT_ADDRESS) if a]


@lru_cache()
def get_settings() -> Settings:
    chain_id = int(os.environ.get("FORCE_CHAIN_ID") or os.environ.get("CHAIN_ID", 11155111))
    return Settings(
        RPC_URL_DEFAULT=os.environ.get("RPC_URL", "http://localhost:8545"),
        CHAIN_ID=chain_id,
        UNI_V3_QUOTER=os.environ.get("UNI_V3_QUOTER") or UNI_V3_QUOTERS.get(chain_id, ""),
        DEFAULT_SWAP_POOL_FEE=int(os.environ.get("DEFAULT_SWAP_POOL_FEE", 3000)),
        UNI_V3_SWAP_ROUTER=os.environ.get("UNI_V3_SWAP_ROUTER") or UNI_V3_SWAP_ROUTERS.get(chain_id, ""),

        WETH_ADDRESS=os.environ.get("WETH_ADDRESS", "0x7b79995e5f793A07Bc00c21412e50Ecae098E7f9"),
        USDC_ADDRESS=os.environ.get("USDC_ADDRESS", "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238"),
        USDT_ADDRESS=os.environ.get("USDT_ADDRESS", "0xaA8E23Fb1079EA71e0a56F48a2aA51851D8433D0"),
        ANCHOR_TOKENS=_csv(os.environ.get("ANCHOR_TOKENS")),

        ALLOWED_TOKENS=_csv(os.environ.get("ALLOWED_TOKENS")),
        ALLOW_ANY_TOKEN=_bool(os.environ.get("ALLOW_ANY_TOKEN")),
        TOKEN_DECIMALS=_decimals_map(os.environ.get("TOKEN_DECIMALS")),

        QUOTE_DEFAULT_TTL_SEC=int(os.environ.get("QUOTE_DEFAULT_TTL_SEC", 600)),
        QUOTE_MAX_TTL_SEC=int(os.environ.get("QUOTE_MAX_TTL_SEC", 24 * 60 * 60)),
        QUOTE_CACHE_TTL_SEC=int(os.environ.get("QUOTE_CACHE_TTL_SEC", 300)),
        QUOTE_SWEEP_INTERVAL_SEC=int(os.environ.get("QUOTE_SWEEP_INTERVAL_SEC", 60)),
        QUOTE_TIMEOUT_SEC=float(os.environ.get("QUOTE_TIMEOUT_SEC", 20)),
        ORACLE_CALL_TIMEOUT_SEC=float(os.environ.get("ORACLE_CALL_TIMEOUT_SEC", 8)),

        STORAGE_BACKEND=os.environ.get("STORAGE_BACKEND", "mongodb"),
        MONGODB_URI=os.environ.get("MONGODB_URI", "mongodb://localhost:27017"),
        MONGODB_DB_NAME=os.environ.get("MONGODB_DB_NAME", "quotes_db"),

        COINGECKO_API_KEY=os.environ.get("COINGECKO_API_KEY", ""),
        COINGECKO_PLATFORM=os.environ.get("COINGECKO_PLATFORM", "ethereum"),
        WETH_USD_FALLBACK=float(os.environ.get("WETH_USD_FALLBACK", 2000)),
        PRICE_CACHE_TTL_SEC=int(os.environ.get("PRICE_CACHE_TTL_SEC", 30)),

        ENV=os.environ.get("ENV", "dev"),
        LOG_LEVEL=os.environ.get("LOG_LEVEL", "INFO"),
    )
