"""
Structured logging for RPC and transaction lifecycle events.

Features:
- Per-call RPC logging with latency and error codes
- Transaction submission, confirmation and failure events
- Gas quote logging
- Reorg notices from the confirmation tracker
- Optional address masking
"""
from __future__ import annotations

import json
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .config import LoggingConfig, get_config

logger = logging.getLogger(__name__)


@dataclass
class RPCCallLog:
    """Log entry for an RPC call."""
    method: str
    request_id: int
    duration_ms: float
    success: bool
    chain_id: Optional[int] = None
    error_code: Optional[int] = None
    error_message: Optional[str] = None
    logged_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "request_id": self.request_id,
            "chain_id": self.chain_id,
            "duration_ms": round(self.duration_ms, 3),
            "success": self.success,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "logged_at": self.logged_at.isoformat(),
        }


@dataclass
class TransactionLog:
    """Log entry for a submitted transaction."""
    tx_hash: str
    chain_id: Optional[int]
    from_address: Optional[str]
    to_address: Optional[str]
    value_wei: int
    nonce: Optional[int]
    gas_limit: Optional[int]
    fee_mode: str
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: str = "submitted"
    block_number: Optional[int] = None
    confirmations: int = 0
    error: Optional[str] = None

    def to_dict(self, mask_addresses: bool = False) -> Dict[str, Any]:
        def show(address: Optional[str]) -> Optional[str]:
            if address is None or not mask_addresses:
                return address
            return mask_address(address)

        return {
            "tx_hash": self.tx_hash,
            "chain_id": self.chain_id,
            "from_address": show(self.from_address),
            "to_address": show(self.to_address),
            "value_wei": self.value_wei,
            "nonce": self.nonce,
            "gas_limit": self.gas_limit,
            "fee_mode": self.fee_mode,
            "submitted_at": self.submitted_at.isoformat(),
            "status": self.status,
            "block_number": self.block_number,
            "confirmations": self.confirmations,
            "error": self.error,
        }


def mask_address(address: str) -> str:
    """Mask middle portion of address for privacy."""
    if len(address) < 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


class ChainLogger:
    """
    Structured logger shared by the RPC client, transaction manager and
    confirmation tracker.

    Every record carries its payload under a single ``extra`` key so that
    JSON formatters can pick it up.
    """

    def __init__(
        self,
        name: str = "flexether",
        config: Optional[LoggingConfig] = None,
        max_history: int = 1000,
    ):
        self._logger = logging.getLogger(name)
        self._config = config or get_config().logging

        self._rpc_calls: List[RPCCallLog] = []
        self._transactions: OrderedDict[str, TransactionLog] = OrderedDict()
        self._max_history = max_history

    def _get_level(self, level_str: str) -> int:
        """Convert level string to logging level."""
        return getattr(logging, level_str.upper(), logging.INFO)

    def _show(self, address: Optional[str]) -> Optional[str]:
        if address is None or not self._config.mask_addresses:
            return address
        return mask_address(address)

    def log_rpc_call(
        self,
        method: str,
        request_id: int,
        duration_ms: float,
        success: bool,
        chain_id: Optional[int] = None,
        error_code: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> None:
        """Log an RPC call."""
        if not self._config.log_rpc_latency:
            return

        entry = RPCCallLog(
            method=method,
            request_id=request_id,
            duration_ms=duration_ms,
            success=success,
            chain_id=chain_id,
            error_code=error_code,
            error_message=error_message,
        )
        self._rpc_calls.append(entry)
        if len(self._rpc_calls) > self._max_history:
            self._rpc_calls = self._rpc_calls[-self._max_history:]

        level = (
            self._get_level(self._config.rpc_call_level)
            if success
            else self._get_level(self._config.error_level)
        )
        self._logger.log(
            level,
            f"RPC {method} id={request_id} in {duration_ms:.0f}ms (success={success})",
            extra={"rpc_call": entry.to_dict()},
        )

    def log_transaction_submitted(
        self,
        tx_hash: str,
        chain_id: Optional[int],
        from_address: Optional[str],
        to_address: Optional[str],
        value_wei: int,
        nonce: Optional[int],
        gas_limit: Optional[int],
        fee_mode: str,
    ) -> None:
        """Log transaction submission."""
        entry = TransactionLog(
            tx_hash=tx_hash,
            chain_id=chain_id,
            from_address=from_address,
            to_address=to_address,
            value_wei=value_wei,
            nonce=nonce,
            gas_limit=gas_limit,
            fee_mode=fee_mode,
        )
        self._transactions[tx_hash] = entry
        self._transactions.move_to_end(tx_hash)
        while len(self._transactions) > self._max_history:
            self._transactions.popitem(last=False)

        self._logger.log(
            self._get_level(self._config.transaction_level),
            f"Transaction submitted: {tx_hash} on chain {chain_id}",
            extra={"transaction": entry.to_dict(self._config.mask_addresses)},
        )

    def log_transaction_confirmed(
        self,
        tx_hash: str,
        block_number: int,
        confirmations: int,
    ) -> None:
        """Log that a transaction reached its requested depth."""
        entry = self._transactions.get(tx_hash)
        if entry is not None:
            entry.status = "confirmed"
            entry.block_number = block_number
            entry.confirmations = confirmations

        self._logger.log(
            self._get_level(self._config.confirmation_level),
            f"Transaction confirmed: {tx_hash} in block {block_number} "
            f"with {confirmations} confirmations",
            extra={"transaction": entry.to_dict(self._config.mask_addresses) if entry else {
                "tx_hash": tx_hash,
                "block_number": block_number,
                "confirmations": confirmations,
            }},
        )

    def log_transaction_failed(self, tx_hash: Optional[str], error: str) -> None:
        """Log transaction failure (on-chain revert or submission error)."""
        entry = self._transactions.get(tx_hash) if tx_hash else None
        if entry is not None:
            entry.status = "failed"
            entry.error = error

        self._logger.log(
            self._get_level(self._config.error_level),
            f"Transaction failed: {tx_hash or '<unsubmitted>'} - {error}",
            extra={"transaction": entry.to_dict(self._config.mask_addresses) if entry else {
                "tx_hash": tx_hash,
                "error": error,
            }},
        )

    def log_reorg_detected(
        self,
        tx_hash: str,
        previous_block: Optional[int],
        current_block: Optional[int],
        previous_confirmations: int,
        current_confirmations: int,
    ) -> None:
        """Log a receipt that moved or vanished between polls."""
        self._logger.warning(
            f"Chain reorg affected {tx_hash}: block {previous_block} -> {current_block}, "
            f"confirmations {previous_confirmations} -> {current_confirmations}",
            extra={
                "reorg": {
                    "tx_hash": tx_hash,
                    "previous_block": previous_block,
                    "current_block": current_block,
                    "previous_confirmations": previous_confirmations,
                    "current_confirmations": current_confirmations,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                }
            },
        )

    def log_gas_estimation(
        self,
        chain_id: Optional[int],
        fee_mode: str,
        gas_limit: Optional[int] = None,
        gas_price: Optional[int] = None,
        max_fee_per_gas: Optional[int] = None,
        max_priority_fee_per_gas: Optional[int] = None,
        is_capped: bool = False,
    ) -> None:
        """Log gas estimation."""
        if not self._config.log_gas_prices:
            return

        payload = {
            "chain_id": chain_id,
            "fee_mode": fee_mode,
            "gas_limit": gas_limit,
            "gas_price": gas_price,
            "max_fee_per_gas": max_fee_per_gas,
            "max_priority_fee_per_gas": max_priority_fee_per_gas,
            "is_capped": is_capped,
        }
        self._logger.debug(
            f"Gas quote for chain {chain_id} ({fee_mode}): "
            + json.dumps({k: v for k, v in payload.items() if v is not None and k != "chain_id"})
            + (" (CAPPED)" if is_capped else ""),
            extra={"gas_estimation": payload},
        )

    def get_rpc_metrics(self) -> Dict[str, Any]:
        """Get RPC call metrics."""
        if not self._rpc_calls:
            return {"total_calls": 0}

        successful = [c for c in self._rpc_calls if c.success]
        latencies = [c.duration_ms for c in successful]

        return {
            "total_calls": len(self._rpc_calls),
            "successful_calls": len(successful),
            "failed_calls": len(self._rpc_calls) - len(successful),
            "avg_latency_ms": sum(latencies) / len(latencies) if latencies else 0,
            "max_latency_ms": max(latencies) if latencies else 0,
        }

    def get_transaction_metrics(self) -> Dict[str, Any]:
        """Get transaction metrics."""
        statuses: Dict[str, int] = {}
        for tx in self._transactions.values():
            statuses[tx.status] = statuses.get(tx.status, 0) + 1
        return {
            "total_transactions": len(self._transactions),
            "status_breakdown": statuses,
        }


def setup_logging(
    level: str = "INFO",
    format_string: Optional[str] = None,
    json_format: bool = False,
) -> None:
    """
    Set up logging configuration.

    Args:
        level: Log level
        format_string: Custom format string
        json_format: Use JSON formatting
    """
    if format_string is None:
        if json_format:
            format_string = '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "name": "%(name)s", "message": "%(message)s"}'
        else:
            format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=format_string,
    )

    logging.getLogger("flexether").setLevel(getattr(logging, level.upper()))
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
