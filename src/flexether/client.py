"""
Caller-facing client.

Usage:
    async with FlexEther(rpc_url="http://localhost:8545", key=private_key) as eth:
        balance = await eth.get_balance("vitalik.eth")
        tx = eth.transfer("0x...", 10**18)
        print(await tx.transaction_hash())
        receipt = await tx.confirmed(3)
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from .config import FlexEtherConfig, get_config
from .confirmation import PendingTransaction
from .exceptions import InvalidBlockNumberError, InvalidNameError
from .gas import GasPricer
from .hardforks import HardforkRule
from .logging_utils import ChainLogger
from .models import Block, Log, Transaction, TransactionReceipt
from .resolver import NameResolver
from .rpc_client import BlockRef, RPCClient, StateOverrides
from .signing import LocalKeySigner, PrivateKey
from .transactions import TransactionManager, TransactionOptions
from .transport import HTTPTransport
from .utils import BLOCK_TAGS, is_hash

logger = logging.getLogger(__name__)


class FlexEther:
    """
    Ethereum JSON-RPC client with name resolution, fee pricing and
    confirmation tracking.

    Args:
        transport: A Transport, a callable, or a provider object with
            ``send_payload``/``send_async``/``send``
        rpc_url: HTTP(S) endpoint, used when no transport is given
        key: Default private key for signing; without one the node signs
        config: Configuration (default: the process-wide config)
        registry_addresses: Override the chain id -> name registry table
        hardfork_rules: Override the chain id -> hardfork schedule
    """

    def __init__(
        self,
        transport: Any = None,
        rpc_url: Optional[str] = None,
        key: Optional[PrivateKey] = None,
        config: Optional[FlexEtherConfig] = None,
        registry_addresses: Optional[Dict[int, str]] = None,
        hardfork_rules: Optional[Dict[int, Sequence[HardforkRule]]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._config = config or get_config()
        logging.getLogger("flexether").setLevel(self._config.log_level.upper())
        if transport is None:
            if not rpc_url:
                raise ValueError("Either transport or rpc_url is required")
            transport = HTTPTransport(rpc_url, self._config.http)

        self._chain_logger = ChainLogger(config=self._config.logging)
        self.rpc = RPCClient(transport, self._config, self._chain_logger)
        self.resolver = NameResolver(
            self.rpc,
            self._config.name_resolution,
            registry_addresses=registry_addresses,
            clock=clock,
        )
        self.gas_pricer = GasPricer(
            self.rpc,
            self._config.gas,
            hardfork_rules=hardfork_rules,
            chain_logger=self._chain_logger,
        )
        self.transactions = TransactionManager(
            self.rpc,
            self.resolver,
            self.gas_pricer,
            self._config,
            signer=LocalKeySigner(key) if key is not None else None,
            chain_logger=self._chain_logger,
        )
        logger.debug(
            f"FlexEther ready ({'local key' if key is not None else 'node'} signing)"
        )

    @property
    def config(self) -> FlexEtherConfig:
        return self._config

    @property
    def chain_logger(self) -> ChainLogger:
        return self._chain_logger

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_chain_id(self) -> int:
        return await self.rpc.get_chain_id()

    async def get_accounts(self) -> List[str]:
        return await self.rpc.get_accounts()

    async def get_default_account(self) -> Optional[str]:
        return await self.rpc.get_default_account()

    async def get_block_number(self) -> int:
        return await self.rpc.get_block_number()

    async def get_transaction_count(self, address: str, block: BlockRef = "latest") -> int:
        address = await self.resolve(address)
        return await self.rpc.get_transaction_count(
            address, await self.resolve_block_directive(block)
        )

    async def get_balance(self, address: str, block: BlockRef = "latest") -> int:
        """Balance in wei of an address or name."""
        address = await self.resolve(address)
        return await self.rpc.get_balance(address, await self.resolve_block_directive(block))

    async def get_code(self, address: str, block: BlockRef = "latest") -> str:
        address = await self.resolve(address)
        return await self.rpc.get_code(address, await self.resolve_block_directive(block))

    async def get_logs(
        self,
        from_block: BlockRef = None,
        to_block: BlockRef = None,
        address: Optional[str] = None,
        block_hash: Optional[str] = None,
        topics: Optional[Sequence[Any]] = None,
    ) -> List[Log]:
        return await self.rpc.get_logs(
            from_block=(
                await self.resolve_block_directive(from_block)
                if from_block is not None else None
            ),
            to_block=(
                await self.resolve_block_directive(to_block)
                if to_block is not None else None
            ),
            address=await self.resolve(address) if address is not None else None,
            block_hash=block_hash,
            topics=topics,
        )

    async def get_gas_price(self) -> int:
        """Network gas price in wei, without bonus."""
        return await self.rpc.get_gas_price()

    async def get_gas_price_with_bonus(self, bonus: Optional[float] = None) -> int:
        """Legacy gas price with ``gas_price_bonus`` (or ``bonus``) applied."""
        return await self.gas_pricer.get_gas_price(bonus)

    async def get_block(self, number_or_hash: BlockRef = "latest") -> Optional[Block]:
        if is_hash(number_or_hash):
            return await self.rpc.get_block(number_or_hash)
        return await self.rpc.get_block(await self.resolve_block_directive(number_or_hash))

    async def get_transaction(self, tx_hash: str) -> Optional[Transaction]:
        return await self.rpc.get_transaction(tx_hash)

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        return await self.rpc.get_transaction_receipt(tx_hash)

    async def resolve(self, name: str, block: BlockRef = "latest") -> str:
        """Resolve a name (or checksum an address)."""
        if not name:
            raise InvalidNameError(name)
        return await self.resolver.resolve(name, block)

    async def resolve_block_directive(self, block: BlockRef = -1) -> BlockRef:
        """
        Turn a block directive into something the node accepts.

        Tags and non-negative numbers pass through. ``-N`` means N blocks
        back from the head counting the head itself, so ``-1`` is the head.
        """
        if isinstance(block, str) and block in BLOCK_TAGS:
            return block
        if isinstance(block, int) and not isinstance(block, bool):
            if block >= 0:
                return block
            resolved = await self.rpc.get_block_number() + block + 1
            if resolved <= 0:
                raise InvalidBlockNumberError(block)
            return resolved
        raise InvalidBlockNumberError(block)

    # =========================================================================
    # Transactions
    # =========================================================================

    async def estimate_gas(self, to: Optional[str], **options: Any) -> int:
        """Bonus-adjusted gas limit. Accepts TransactionOptions fields."""
        return await self.transactions.estimate_gas(to, TransactionOptions(**options))

    async def call(
        self,
        to: Optional[str],
        block: BlockRef = None,
        overrides: Optional[StateOverrides] = None,
        **options: Any,
    ) -> str:
        """Execute without submitting and return the raw output bytes."""
        resolved_block = (
            await self.resolve_block_directive(block) if block is not None else "latest"
        )
        return await self.transactions.call(
            to, TransactionOptions(**options), resolved_block, overrides
        )

    def send(self, to: Optional[str], **options: Any) -> PendingTransaction:
        """Submit a transaction. Must be called with a running event loop."""
        return self.transactions.send(to, TransactionOptions(**options))

    def transfer(self, to: str, amount: Any, **options: Any) -> PendingTransaction:
        """Send ``amount`` wei. Must be called with a running event loop."""
        return self.transactions.transfer(to, amount, TransactionOptions(**options))

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def close(self) -> None:
        await self.rpc.close()

    async def __aenter__(self) -> "FlexEther":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
