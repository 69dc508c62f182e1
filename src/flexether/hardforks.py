"""
Hardfork schedule per chain.

Each chain maps to a list of rules ordered by activation block, highest
first. The active rule for a block is the first whose activation block is
at or below it. Unknown chains fall back to legacy rules.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence


class RuleSet(str, Enum):
    """Transaction encoding and fee model."""
    LEGACY = "legacy"
    ACCESS_LIST = "access_list"  # EIP-2930 (berlin)
    FEE_MARKET = "fee_market"    # EIP-1559 (london)

    @property
    def uses_fee_market(self) -> bool:
        return self is RuleSet.FEE_MARKET


@dataclass(frozen=True)
class HardforkRule:
    activation_block: int
    rule_set: RuleSet
    name: str = ""


DEFAULT_RULE = HardforkRule(0, RuleSet.LEGACY, "default")

HARDFORK_RULES: Dict[int, List[HardforkRule]] = {
    # Ethereum mainnet
    1: [
        HardforkRule(12_965_000, RuleSet.FEE_MARKET, "london"),
        HardforkRule(12_244_000, RuleSet.ACCESS_LIST, "berlin"),
        HardforkRule(0, RuleSet.LEGACY, "istanbul"),
    ],
    # Goerli
    5: [
        HardforkRule(5_062_605, RuleSet.FEE_MARKET, "london"),
        HardforkRule(4_460_644, RuleSet.ACCESS_LIST, "berlin"),
        HardforkRule(0, RuleSet.LEGACY, "istanbul"),
    ],
    # Sepolia
    11155111: [HardforkRule(0, RuleSet.FEE_MARKET, "london")],
    # Holesky
    17000: [HardforkRule(0, RuleSet.FEE_MARKET, "london")],
    # Polygon PoS
    137: [
        HardforkRule(23_850_000, RuleSet.FEE_MARKET, "london"),
        HardforkRule(14_750_000, RuleSet.ACCESS_LIST, "berlin"),
        HardforkRule(0, RuleSet.LEGACY, "istanbul"),
    ],
    # Optimism
    10: [HardforkRule(0, RuleSet.FEE_MARKET, "bedrock")],
    # Base
    8453: [HardforkRule(0, RuleSet.FEE_MARKET, "bedrock")],
    # Base Sepolia
    84532: [HardforkRule(0, RuleSet.FEE_MARKET, "bedrock")],
}


def get_hardfork_rule(
    chain_id: int,
    block_number: int,
    rules: Optional[Dict[int, Sequence[HardforkRule]]] = None,
) -> HardforkRule:
    """Return the rule active on ``chain_id`` at ``block_number``."""
    table = HARDFORK_RULES if rules is None else rules
    for rule in table.get(chain_id, ()):
        if rule.activation_block <= block_number:
            return rule
    return DEFAULT_RULE
