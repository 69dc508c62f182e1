"""
Transaction construction and submission.

Pipeline shared by send, transfer, call and estimate_gas:
1. Resolve ``to`` through the name resolver (skipped for contract creation)
2. Resolve the caller: explicit name/address, provider account index,
   signing key, or the provider's default account
3. Assemble a TransactionRequest (value defaults to zero)

``send`` then requires a caller and a destination, fills nonce, fees, gas
limit and chain id, and submits either a locally signed raw transaction or
an unsigned one for the node to sign.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Optional, Union

from .config import FlexEtherConfig, get_config
from .confirmation import PendingTransaction
from .exceptions import CannotDetermineCallerError, NoDestinationError
from .gas import GasPricer
from .logging_utils import ChainLogger
from .models import TransactionRequest
from .resolver import NameResolver
from .rpc_client import BlockRef, RPCClient, StateOverrides
from .signing import LocalKeySigner, PrivateKey, TransactionSigner
from .utils import as_bytes, to_int

logger = logging.getLogger(__name__)


@dataclass
class TransactionOptions:
    """Caller-supplied overrides for one transaction."""
    from_address: Union[str, int, None] = None
    key: Optional[PrivateKey] = None
    value: Any = 0
    data: Union[str, bytes, None] = None
    gas: Optional[int] = None
    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    nonce: Optional[int] = None
    gas_bonus: Optional[float] = None
    gas_price_bonus: Optional[float] = None


class TransactionManager:
    """
    Builds, prices, signs and submits transactions.

    A signer passed at construction is used whenever the options carry no
    key of their own.
    """

    def __init__(
        self,
        rpc: RPCClient,
        resolver: NameResolver,
        gas_pricer: GasPricer,
        config: Optional[FlexEtherConfig] = None,
        signer: Optional[TransactionSigner] = None,
        chain_logger: Optional[ChainLogger] = None,
    ):
        self._rpc = rpc
        self._resolver = resolver
        self._gas_pricer = gas_pricer
        self._config = config or get_config()
        self._signer = signer
        self._chain_logger = chain_logger or ChainLogger(config=self._config.logging)

    def _signer_for(self, options: TransactionOptions) -> Optional[TransactionSigner]:
        if options.key is not None:
            return LocalKeySigner(options.key)
        return self._signer

    async def _resolve_caller(
        self,
        options: TransactionOptions,
        signer: Optional[TransactionSigner],
    ) -> Optional[str]:
        caller = options.from_address
        if isinstance(caller, str):
            return await self._resolver.resolve(caller)
        if isinstance(caller, int) and not isinstance(caller, bool):
            accounts = await self._rpc.get_accounts()
            if caller < 0 or caller >= len(accounts):
                raise CannotDetermineCallerError()
            return accounts[caller]
        if signer is not None:
            return signer.get_address()
        return await self._rpc.get_default_account()

    async def build_request(
        self,
        to: Optional[str],
        options: Optional[TransactionOptions] = None,
        signer: Optional[TransactionSigner] = None,
    ) -> TransactionRequest:
        """Resolve names and assemble a request. No destination or caller checks."""
        options = options or TransactionOptions()
        resolved_to = await self._resolver.resolve(to) if to else None
        caller = await self._resolve_caller(options, signer)
        return TransactionRequest(
            to=resolved_to,
            from_address=caller,
            value=to_int(options.value or 0),
            data=as_bytes(options.data) if options.data is not None else None,
            gas=options.gas,
            gas_price=options.gas_price,
            max_fee_per_gas=options.max_fee_per_gas,
            max_priority_fee_per_gas=options.max_priority_fee_per_gas,
            nonce=options.nonce,
        )

    async def call(
        self,
        to: Optional[str],
        options: Optional[TransactionOptions] = None,
        block: BlockRef = "latest",
        overrides: Optional[StateOverrides] = None,
    ) -> str:
        """Execute without submitting. Returns the raw output bytes as hex."""
        options = options or TransactionOptions()
        tx = await self.build_request(to, options, self._signer_for(options))
        if not tx.has_destination:
            raise NoDestinationError()
        return await self._rpc.call(tx, block, overrides)

    async def estimate_gas(
        self,
        to: Optional[str],
        options: Optional[TransactionOptions] = None,
    ) -> int:
        """Bonus-adjusted gas limit for the transaction."""
        options = options or TransactionOptions()
        tx = await self.build_request(to, options, self._signer_for(options))
        if not tx.has_destination:
            raise NoDestinationError()
        return await self._gas_pricer.estimate_gas(tx, options.gas_bonus)

    async def submit(
        self,
        to: Optional[str],
        options: Optional[TransactionOptions] = None,
    ) -> str:
        """
        Build, complete and submit a transaction.

        Returns:
            Transaction hash

        Raises:
            CannotDetermineCallerError: If no caller could be resolved
            NoDestinationError: If there is neither a recipient nor data
        """
        options = options or TransactionOptions()
        signer = self._signer_for(options)
        tx = await self.build_request(to, options, signer)

        if not tx.from_address:
            raise CannotDetermineCallerError()
        if not tx.has_destination:
            raise NoDestinationError()

        if tx.nonce is None:
            tx = replace(
                tx, nonce=await self._rpc.get_transaction_count(tx.from_address, "pending")
            )

        rule = await self._gas_pricer.get_rule()
        if tx.gas_price is not None:
            tx = replace(tx, max_fee_per_gas=None, max_priority_fee_per_gas=None)
        elif tx.uses_fee_market and rule.rule_set.uses_fee_market:
            if tx.max_fee_per_gas is None or tx.max_priority_fee_per_gas is None:
                fees = await self._gas_pricer.get_fee_market_fees(options.gas_price_bonus)
                tx = replace(
                    tx,
                    max_fee_per_gas=tx.max_fee_per_gas or fees.max_fee_per_gas,
                    max_priority_fee_per_gas=(
                        tx.max_priority_fee_per_gas
                        if tx.max_priority_fee_per_gas is not None
                        else fees.max_priority_fee_per_gas
                    ),
                )
        else:
            if tx.uses_fee_market:
                logger.warning(
                    f"Chain rule '{rule.name}' has no fee market; "
                    f"replacing maxFeePerGas/maxPriorityFeePerGas with a legacy gas price"
                )
            quote = await self._gas_pricer.quote(options.gas_price_bonus, rule)
            tx = quote.apply_to(tx)

        if tx.gas is None:
            tx = replace(tx, gas=await self._gas_pricer.estimate_gas(tx, options.gas_bonus))

        tx = replace(tx, chain_id=await self._rpc.get_chain_id())

        if signer is not None:
            raw = await signer.sign_transaction(tx, rule.rule_set)
            tx_hash = await self._rpc.send_raw_transaction(raw)
        else:
            tx_hash = await self._rpc.send_transaction(tx)

        self._chain_logger.log_transaction_submitted(
            tx_hash=tx_hash,
            chain_id=tx.chain_id,
            from_address=tx.from_address,
            to_address=tx.to,
            value_wei=tx.value,
            nonce=tx.nonce,
            gas_limit=tx.gas,
            fee_mode="fee_market" if tx.uses_fee_market else "legacy",
        )
        return tx_hash

    def send(
        self,
        to: Optional[str],
        options: Optional[TransactionOptions] = None,
    ) -> PendingTransaction:
        """Start submission and return a handle to observe it. Needs a running loop."""
        submission = asyncio.ensure_future(self.submit(to, options))
        return PendingTransaction(
            submission,
            self._rpc,
            config=self._config.confirmation,
            chain_logger=self._chain_logger,
        )

    def transfer(
        self,
        to: str,
        amount: Any,
        options: Optional[TransactionOptions] = None,
    ) -> PendingTransaction:
        """Send ``amount`` wei to ``to``."""
        options = replace(options or TransactionOptions(), value=amount)
        return self.send(to, options)
