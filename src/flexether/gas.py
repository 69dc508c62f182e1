"""
Gas limit and fee pricing.

Quotes are bonus-adjusted network figures:
- legacy: gasPrice = eth_gasPrice * (1 + bonus), optionally clamped
- fee market: maxPriorityFeePerGas = eth_maxPriorityFeePerGas * (1 + bonus),
  maxFeePerGas = baseFee * (1 + bonus) + maxPriorityFeePerGas
- gas limit: ceil(eth_estimateGas * (1 + gasBonus))

The fee model is chosen from the hardfork schedule at the chain head.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal
from typing import Dict, Optional, Sequence, Union

from .config import GasConfig, get_config
from .hardforks import HardforkRule, RuleSet, get_hardfork_rule
from .logging_utils import ChainLogger
from .models import TransactionRequest
from .rpc_client import BlockRef, RPCClient

logger = logging.getLogger(__name__)

Bonus = Union[float, Decimal, None]


def _multiplier(bonus: Union[float, Decimal]) -> Decimal:
    # str() keeps 0.66 from becoming 0.66000000000000003108...
    return Decimal(1) + Decimal(str(bonus))


def apply_bonus(value: int, bonus: Union[float, Decimal]) -> int:
    """Scale ``value`` by ``1 + bonus`` and round to the nearest wei."""
    scaled = Decimal(value) * _multiplier(bonus)
    return max(int(scaled.to_integral_value(rounding=ROUND_HALF_UP)), 0)


def apply_gas_bonus(gas: int, bonus: Union[float, Decimal]) -> int:
    """Scale a gas estimate by ``1 + bonus``, rounding up."""
    scaled = Decimal(gas) * _multiplier(bonus)
    return max(int(scaled.to_integral_value(rounding=ROUND_CEILING)), 0)


@dataclass(frozen=True)
class FeeQuote:
    """Fee fields for a transaction under one rule set."""
    rule_set: RuleSet
    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    is_capped: bool = False

    def apply_to(self, tx: TransactionRequest) -> TransactionRequest:
        """Return ``tx`` with these fee fields filled in."""
        if self.rule_set.uses_fee_market:
            return replace(
                tx,
                gas_price=None,
                max_fee_per_gas=self.max_fee_per_gas,
                max_priority_fee_per_gas=self.max_priority_fee_per_gas,
            )
        return replace(
            tx,
            gas_price=self.gas_price,
            max_fee_per_gas=None,
            max_priority_fee_per_gas=None,
        )


class GasPricer:
    """
    Bonus-adjusted fee quotes and gas limit estimates.

    A negative bonus undercuts the network quote.
    """

    def __init__(
        self,
        rpc: RPCClient,
        config: Optional[GasConfig] = None,
        hardfork_rules: Optional[Dict[int, Sequence[HardforkRule]]] = None,
        chain_logger: Optional[ChainLogger] = None,
    ):
        self._rpc = rpc
        self._config = config or get_config().gas
        self._hardfork_rules = hardfork_rules
        self._chain_logger = chain_logger or ChainLogger()

    @property
    def config(self) -> GasConfig:
        return self._config

    async def get_rule(self, block_number: Optional[int] = None) -> HardforkRule:
        """Hardfork rule for the chain at ``block_number`` (default: current head)."""
        chain_id = await self._rpc.get_chain_id()
        if block_number is None:
            block_number = await self._rpc.get_block_number()
        return get_hardfork_rule(chain_id, block_number, self._hardfork_rules)

    async def get_gas_price(self, bonus: Bonus = None) -> int:
        """Legacy gas price in wei, bonus-adjusted and clamped to ``max_gas_price``."""
        quote = await self._legacy_quote(bonus)
        return quote.gas_price

    async def _legacy_quote(self, bonus: Bonus) -> FeeQuote:
        bonus = self._config.gas_price_bonus if bonus is None else bonus
        price = apply_bonus(await self._rpc.get_gas_price(), bonus)
        is_capped = False
        if self._config.max_gas_price is not None and price > self._config.max_gas_price:
            price = self._config.max_gas_price
            is_capped = True
        return FeeQuote(RuleSet.LEGACY, gas_price=price, is_capped=is_capped)

    async def get_fee_market_fees(self, bonus: Bonus = None) -> FeeQuote:
        """EIP-1559 fee fields from the latest base fee and the node's tip suggestion."""
        bonus = self._config.gas_price_bonus if bonus is None else bonus
        priority_fee = apply_bonus(await self._rpc.get_max_priority_fee_per_gas(), bonus)
        block = await self._rpc.get_block("latest")
        base_fee = block.base_fee_per_gas if block and block.base_fee_per_gas else 0
        max_fee = apply_bonus(base_fee, bonus) + priority_fee
        return FeeQuote(
            RuleSet.FEE_MARKET,
            max_fee_per_gas=max_fee,
            max_priority_fee_per_gas=priority_fee,
        )

    async def quote(
        self,
        bonus: Bonus = None,
        rule: Optional[HardforkRule] = None,
    ) -> FeeQuote:
        """Fee fields under the rule active at the head (or ``rule`` if given)."""
        rule = rule or await self.get_rule()
        if rule.rule_set.uses_fee_market:
            fees = await self.get_fee_market_fees(bonus)
        else:
            fees = await self._legacy_quote(bonus)
            fees = replace(fees, rule_set=rule.rule_set)

        self._chain_logger.log_gas_estimation(
            chain_id=await self._rpc.get_chain_id(),
            fee_mode=fees.rule_set.value,
            gas_price=fees.gas_price,
            max_fee_per_gas=fees.max_fee_per_gas,
            max_priority_fee_per_gas=fees.max_priority_fee_per_gas,
            is_capped=fees.is_capped,
        )
        return fees

    async def _get_block_gas_limit(self) -> Optional[int]:
        for tag in ("pending", "latest"):
            block = await self._rpc.get_block(tag)
            if block is not None and block.gas_limit:
                return block.gas_limit
        return None

    async def estimate_gas(
        self,
        tx: TransactionRequest,
        bonus: Bonus = None,
        block: BlockRef = "latest",
    ) -> int:
        """
        Estimate a gas limit for ``tx``.

        Caller-supplied gas and fee fields are dropped so the node is not
        bound by a too-low limit; the block gas limit is sent as the ceiling.
        """
        bonus = self._config.gas_bonus if bonus is None else bonus
        probe = replace(
            tx,
            gas=None,
            gas_price=None,
            max_fee_per_gas=None,
            max_priority_fee_per_gas=None,
            nonce=None,
        )
        if self._config.use_block_gas_limit_probe:
            probe = replace(probe, gas=await self._get_block_gas_limit())

        raw = await self._rpc.estimate_gas(probe, block)
        gas = apply_gas_bonus(raw, bonus)
        logger.debug(f"Gas estimate {raw} -> {gas} (bonus={bonus})")
        return gas
