"""
Name resolution against the on-chain name registry.

Resolution is three read-only calls against the same block:
registry.resolver(topLevelHash) -> resolver.addr(fullHash) -> registry.ttl(topLevelHash).
Successful results are cached per (chain id, name hash) for the reported TTL,
clamped to the configured bounds.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak

from .config import NameResolutionConfig, get_config
from .exceptions import (
    InvalidNameError,
    NoResolverError,
    ResolutionFailedError,
    UnsupportedChainError,
)
from .models import TransactionRequest
from .rpc_client import BlockRef, RPCClient
from .utils import NULL_ADDRESS, as_address, as_bytes, is_address

logger = logging.getLogger(__name__)

REGISTRY_ADDRESS = "0x00000000000C2E074eC69A0dFb2997BA6C7d2e1e"

# Chain ID -> name registry contract
REGISTRY_ADDRESSES: Dict[int, str] = {
    1: REGISTRY_ADDRESS,          # Ethereum mainnet
    3: REGISTRY_ADDRESS,          # Ropsten
    4: REGISTRY_ADDRESS,          # Rinkeby
    5: REGISTRY_ADDRESS,          # Goerli
    11155111: REGISTRY_ADDRESS,   # Sepolia
    17000: REGISTRY_ADDRESS,      # Holesky
}

# Function selectors
RESOLVER_SELECTOR = bytes.fromhex("0178b8bf")  # resolver(bytes32)
ADDR_SELECTOR = bytes.fromhex("3b3b57de")      # addr(bytes32)
TTL_SELECTOR = bytes.fromhex("16a25cbd")       # ttl(bytes32)


def hash_name(name: str, top_level_only: bool = False) -> bytes:
    """
    Compute the recursive name hash of a dotted name.

    Labels are lower-cased and folded from the root label leftward:
    ``node = keccak(node + keccak(label))`` starting from 32 zero bytes.
    With ``top_level_only`` only the two right-most labels are folded.
    """
    if not isinstance(name, str):
        raise InvalidNameError(name)
    labels = [label for label in name.lower().split(".") if label]
    labels.reverse()
    if len(labels) < 2:
        raise InvalidNameError(name)
    if top_level_only:
        labels = labels[:2]

    node = b"\x00" * 32
    for label in labels:
        node = keccak(node + keccak(text=label))
    return node


@dataclass
class NameCacheEntry:
    """A cached resolution."""
    address: str
    expires_at: float  # epoch milliseconds


def _current_time_ms() -> float:
    return time.time() * 1000


class NameResolver:
    """
    Resolves names (or passes addresses through) with a TTL-bounded cache.

    Concurrent resolutions of an uncached name may both hit the chain; the
    last writer wins with an equivalent entry.
    """

    def __init__(
        self,
        rpc: RPCClient,
        config: Optional[NameResolutionConfig] = None,
        registry_addresses: Optional[Dict[int, str]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._rpc = rpc
        self._config = config or get_config().name_resolution
        self._registries = dict(
            REGISTRY_ADDRESSES if registry_addresses is None else registry_addresses
        )
        self._clock = clock or _current_time_ms
        self._cache: Dict[Tuple[int, bytes], NameCacheEntry] = {}

    async def resolve(self, name: str, block: BlockRef = "latest") -> str:
        """
        Resolve a name or address to a checksummed address.

        Raises:
            InvalidNameError: If ``name`` is not an address and has fewer than two labels
            UnsupportedChainError: If the chain has no registry
            NoResolverError: If the registry has no resolver for the name's domain
            ResolutionFailedError: If the resolver has no address for the name
        """
        if is_address(name):
            return as_address(name)

        top_level_hash = hash_name(name, top_level_only=True)
        full_hash = hash_name(name)
        chain_id = await self._rpc.get_chain_id()

        cached = self._get_cached(chain_id, full_hash)
        if cached is not None:
            return cached

        registry = self._get_registry(chain_id)

        resolver = await self._call_for_address(registry, RESOLVER_SELECTOR, top_level_hash, block)
        if resolver is None:
            raise NoResolverError(name, chain_id)

        address = await self._call_for_address(resolver, ADDR_SELECTOR, full_hash, block)
        if address is None:
            raise ResolutionFailedError(name, chain_id)

        ttl_seconds = await self._get_ttl(registry, top_level_hash, block)
        if ttl_seconds > 0:
            self._put_cached(chain_id, full_hash, address, ttl_seconds * 1000)

        logger.debug(
            f"Resolved {name} -> {address} on chain {chain_id} (ttl={ttl_seconds}s)"
        )
        return address

    def get_cache_entry(self, chain_id: int, name: str) -> Optional[NameCacheEntry]:
        """Inspect the raw cache entry for a name, expired or not."""
        return self._cache.get((chain_id, hash_name(name)))

    def clear_cache(self) -> None:
        self._cache.clear()

    def _get_registry(self, chain_id: int) -> str:
        registry = self._registries.get(chain_id)
        if registry is None:
            raise UnsupportedChainError(chain_id)
        return registry

    def _get_cached(self, chain_id: int, full_hash: bytes) -> Optional[str]:
        entry = self._cache.get((chain_id, full_hash))
        if entry is not None and entry.expires_at > self._clock():
            return entry.address
        return None

    def _put_cached(self, chain_id: int, full_hash: bytes, address: str, ttl_ms: int) -> None:
        self._cache[(chain_id, full_hash)] = NameCacheEntry(
            address=address,
            expires_at=self._clock() + self._config.clamp_ttl(ttl_ms),
        )

    async def _call(self, contract: str, selector: bytes, node: bytes, block: BlockRef) -> bytes:
        data = selector + encode(["bytes32"], [node])
        result = await self._rpc.call(
            TransactionRequest(to=contract, data="0x" + data.hex()),
            block,
        )
        if not result:
            return b""
        return bytes.fromhex(as_bytes(result)[2:])

    async def _call_for_address(
        self, contract: str, selector: bytes, node: bytes, block: BlockRef
    ) -> Optional[str]:
        raw = await self._call(contract, selector, node, block)
        if len(raw) < 32:
            return None
        try:
            (address,) = decode(["address"], raw[:32])
        except DecodingError:
            return None
        if address.lower() == NULL_ADDRESS:
            return None
        return as_address(address)

    async def _get_ttl(self, registry: str, node: bytes, block: BlockRef) -> int:
        raw = await self._call(registry, TTL_SELECTOR, node, block)
        if len(raw) < 32:
            return 0
        (ttl,) = decode(["uint256"], raw[:32])
        return ttl
