"""Transaction signing with local private keys."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Union

from eth_account import Account

from .hardforks import RuleSet
from .models import TransactionRequest
from .utils import as_address, as_bytes

logger = logging.getLogger(__name__)

PrivateKey = Union[str, bytes]


def address_for_key(private_key: PrivateKey) -> str:
    """Checksummed address controlled by ``private_key``."""
    return Account.from_key(private_key).address


def encoding_for(tx: TransactionRequest, rule_set: RuleSet) -> RuleSet:
    """
    Encoding variant for ``tx`` under ``rule_set``.

    A legacy-priced transaction on a fee-market chain is sent as an
    access-list transaction. The encoding never goes past ``rule_set``.

    Raises:
        ValueError: If ``tx`` carries fee-market fields under a pre-london rule set
    """
    if tx.uses_fee_market:
        if not rule_set.uses_fee_market:
            raise ValueError(
                f"maxFeePerGas/maxPriorityFeePerGas cannot be signed under {rule_set.value} rules"
            )
        return RuleSet.FEE_MARKET
    if rule_set in (RuleSet.ACCESS_LIST, RuleSet.FEE_MARKET):
        return RuleSet.ACCESS_LIST
    return RuleSet.LEGACY


def build_signable(tx: TransactionRequest, rule_set: RuleSet) -> Dict[str, Any]:
    """Build the dict eth-account signs for ``tx``."""
    if tx.nonce is None or tx.gas is None or tx.chain_id is None:
        raise ValueError("nonce, gas and chain_id must be set before signing")

    signable: Dict[str, Any] = {
        "nonce": tx.nonce,
        "gas": tx.gas,
        "value": tx.value or 0,
        "data": as_bytes(tx.data) if tx.data else "0x",
        "chainId": tx.chain_id,
    }
    if tx.to:
        signable["to"] = as_address(tx.to)

    encoding = encoding_for(tx, rule_set)
    if encoding is RuleSet.FEE_MARKET:
        signable["type"] = 2
        signable["maxFeePerGas"] = tx.max_fee_per_gas
        signable["maxPriorityFeePerGas"] = tx.max_priority_fee_per_gas or 0
    else:
        signable["gasPrice"] = tx.gas_price or 0
        if encoding is RuleSet.ACCESS_LIST:
            signable["type"] = 1
            signable["accessList"] = []
    return signable


class TransactionSigner(ABC):
    """Abstract interface for signing providers."""

    @abstractmethod
    def get_address(self) -> str:
        """Get the signing address."""

    @abstractmethod
    async def sign_transaction(self, tx: TransactionRequest, rule_set: RuleSet) -> str:
        """Sign a transaction and return the signed tx hex."""


class LocalKeySigner(TransactionSigner):
    """Signs with an in-memory private key via eth-account."""

    def __init__(self, private_key: PrivateKey):
        self._account = Account.from_key(private_key)

    def get_address(self) -> str:
        return self._account.address

    async def sign_transaction(self, tx: TransactionRequest, rule_set: RuleSet) -> str:
        signable = build_signable(tx, rule_set)
        signed = self._account.sign_transaction(signable)
        logger.debug(
            f"Signed type-{signable.get('type', 0)} transaction nonce={tx.nonce} "
            f"from {self._account.address}"
        )
        return "0x" + bytes(signed.raw_transaction).hex()

    def __repr__(self) -> str:
        return f"LocalKeySigner(address={self._account.address})"
