"""Typed records exchanged with the node."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .utils import as_address, as_bytes, checksum_or_none, to_hex, to_number


@dataclass
class TransactionRequest:
    """A transaction being assembled for simulation or submission."""
    to: Optional[str] = None
    from_address: Optional[str] = None
    value: int = 0
    data: Optional[str] = None
    gas: Optional[int] = None
    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    nonce: Optional[int] = None
    chain_id: Optional[int] = None

    @property
    def has_destination(self) -> bool:
        """A transaction needs a recipient or creation bytecode."""
        return bool(self.to) or bool(self.data and self.data != "0x")

    @property
    def uses_fee_market(self) -> bool:
        return self.max_fee_per_gas is not None or self.max_priority_fee_per_gas is not None

    def to_rpc(self, include_nonce: bool = False) -> Dict[str, str]:
        """Encode as an RPC transaction object, omitting unset fields."""
        tx: Dict[str, str] = {}
        if self.to is not None:
            tx["to"] = as_address(self.to)
        if self.from_address is not None:
            tx["from"] = as_address(self.from_address)
        for key, value in (
            ("gas", self.gas),
            ("gasPrice", self.gas_price),
            ("maxFeePerGas", self.max_fee_per_gas),
            ("maxPriorityFeePerGas", self.max_priority_fee_per_gas),
            ("value", self.value),
        ):
            if value is not None:
                tx[key] = to_hex(value)
        if include_nonce and self.nonce is not None:
            tx["nonce"] = to_hex(self.nonce)
        if self.data is not None:
            tx["data"] = as_bytes(self.data)
        return tx


@dataclass(frozen=True)
class Log:
    """An event log emitted by a contract."""
    address: str
    topics: Tuple[str, ...]
    data: str
    block_number: Optional[int] = None
    block_hash: Optional[str] = None
    transaction_hash: Optional[str] = None
    transaction_index: Optional[int] = None
    log_index: Optional[int] = None
    removed: bool = False
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "Log":
        return cls(
            address=as_address(data["address"]),
            topics=tuple(data.get("topics") or ()),
            data=data.get("data", "0x"),
            block_number=to_number(data.get("blockNumber")),
            block_hash=data.get("blockHash"),
            transaction_hash=data.get("transactionHash"),
            transaction_index=to_number(data.get("transactionIndex")),
            log_index=to_number(data.get("logIndex")),
            removed=bool(data.get("removed", False)),
            raw=dict(data),
        )


@dataclass(frozen=True)
class TransactionReceipt:
    """Result of a mined transaction."""
    transaction_hash: str
    block_number: int
    block_hash: Optional[str]
    status: Optional[int]
    gas_used: int
    cumulative_gas_used: Optional[int] = None
    transaction_index: Optional[int] = None
    effective_gas_price: Optional[int] = None
    contract_address: Optional[str] = None
    from_address: Optional[str] = None
    to: Optional[str] = None
    logs: Tuple[Log, ...] = ()
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def failed(self) -> bool:
        # Pre-byzantium receipts carry no status field
        return self.status == 0

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "TransactionReceipt":
        return cls(
            transaction_hash=data["transactionHash"],
            block_number=to_number(data.get("blockNumber")) or 0,
            block_hash=data.get("blockHash"),
            status=to_number(data.get("status")),
            gas_used=to_number(data.get("gasUsed")) or 0,
            cumulative_gas_used=to_number(data.get("cumulativeGasUsed")),
            transaction_index=to_number(data.get("transactionIndex")),
            effective_gas_price=to_number(data.get("effectiveGasPrice")),
            contract_address=checksum_or_none(data.get("contractAddress")),
            from_address=checksum_or_none(data.get("from")),
            to=checksum_or_none(data.get("to")),
            logs=tuple(Log.from_rpc(log) for log in data.get("logs") or ()),
            raw=dict(data),
        )


@dataclass(frozen=True)
class Block:
    """A block header plus transaction hashes."""
    number: Optional[int]
    hash: Optional[str]
    parent_hash: str
    timestamp: int
    gas_limit: int
    gas_used: int
    base_fee_per_gas: Optional[int] = None
    miner: Optional[str] = None
    difficulty: Optional[int] = None
    total_difficulty: Optional[int] = None
    size: Optional[int] = None
    transactions: Tuple[Any, ...] = ()
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "Block":
        return cls(
            number=to_number(data.get("number")),
            hash=data.get("hash"),
            parent_hash=data.get("parentHash", ""),
            timestamp=to_number(data.get("timestamp")) or 0,
            gas_limit=to_number(data.get("gasLimit")) or 0,
            gas_used=to_number(data.get("gasUsed")) or 0,
            base_fee_per_gas=to_number(data.get("baseFeePerGas")),
            miner=checksum_or_none(data.get("miner")),
            difficulty=to_number(data.get("difficulty")),
            total_difficulty=to_number(data.get("totalDifficulty")),
            size=to_number(data.get("size")),
            transactions=tuple(data.get("transactions") or ()),
            raw=dict(data),
        )


@dataclass(frozen=True)
class Transaction:
    """A transaction as reported by eth_getTransactionByHash."""
    hash: str
    from_address: str
    to: Optional[str]
    nonce: int
    value: int
    gas: int
    input: str = "0x"
    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    block_number: Optional[int] = None
    block_hash: Optional[str] = None
    transaction_index: Optional[int] = None
    type: Optional[int] = None
    chain_id: Optional[int] = None
    v: Optional[int] = None
    r: Optional[str] = None
    s: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "Transaction":
        return cls(
            hash=data["hash"],
            from_address=as_address(data["from"]),
            to=checksum_or_none(data.get("to")),
            nonce=to_number(data.get("nonce")) or 0,
            value=to_number(data.get("value")) or 0,
            gas=to_number(data.get("gas")) or 0,
            input=data.get("input", "0x"),
            gas_price=to_number(data.get("gasPrice")),
            max_fee_per_gas=to_number(data.get("maxFeePerGas")),
            max_priority_fee_per_gas=to_number(data.get("maxPriorityFeePerGas")),
            block_number=to_number(data.get("blockNumber")),
            block_hash=data.get("blockHash"),
            transaction_index=to_number(data.get("transactionIndex")),
            type=to_number(data.get("type")),
            chain_id=to_number(data.get("chainId")),
            v=to_number(data.get("v")),
            r=data.get("r"),
            s=data.get("s"),
            raw=dict(data),
        )
