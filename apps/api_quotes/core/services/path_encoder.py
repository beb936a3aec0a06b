"""
Uniswap V3 packed path encoding:

    token0 (20 bytes) | fee (3 bytes, big-endian) | token1 | fee | token2 ...

Exact-output quoting/swapping expects the path reversed (token_out first).
"""

from typing import Sequence

from hexbytes import HexBytes
from web3 import Web3

from ..domain.entities.route_entity import RouteHop

MAX_UINT24 = (1 << 24) - 1


def _token_bytes(addr: str) -> bytes:
    if not Web3.is_address(addr):
        raise ValueError(f"invalid token address in path: {addr}")
    return bytes(HexBytes(Web3.to_checksum_address(addr)))


def _fee_bytes(fee: int) -> bytes:
    fee = int(fee)
    if fee < 0 or fee > MAX_UINT24:
        raise ValueError(f"fee {fee} does not fit in uint24")
    return fee.to_bytes(3, "big")


def encode_path_tokens(path_tokens: Sequence) -> bytes:
    """
    Encode an already flattened [token, fee, token, ..., token] sequence.
    """
    if len(path_tokens) < 3 or len(path_tokens) % 2 == 0:
        raise ValueError("path must look like [token, fee, token, ...]")
    out = b""
    for i, item in enumerate(path_tokens):
        out += _token_bytes(item) if i % 2 == 0 else _fee_bytes(item)
    return out


def encode_path(hops: Sequence[RouteHop], reverse: bool = False) -> str:
    """
    Encode a hop list into the 0x-hex path consumed by QuoterV2/SwapRouter.
    """
    if not hops:
        raise ValueError("empty route")
    for prev, nxt in zip(hops, hops[1:]):
        if prev.token_out.lower() != nxt.token_in.lower():
            raise ValueError(f"broken route: {prev.token_out} != {nxt.token_in}")

    tokens: list = [hops[0].token_in]
    for hop in hops:
        tokens.extend([hop.fee, hop.token_out])
    if reverse:
        tokens = tokens[::-1]
    return Web3.to_hex(encode_path_tokens(tokens))
