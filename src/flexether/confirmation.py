"""
Transaction confirmation tracking.

Features:
- One poll loop per transaction serving any number of waiters
- Mined (receipt) and confirmed(N) observation points
- Reorg-safe: receipt and head are re-fetched on every poll
- Failed receipts surfaced as TransactionFailedError

Polling has no deadline. Bound it with ``asyncio.wait_for``.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generator, List, Optional, Tuple

from .config import ConfirmationConfig, get_config
from .exceptions import TransactionFailedError
from .logging_utils import ChainLogger
from .models import TransactionReceipt
from .rpc_client import RPCClient

logger = logging.getLogger(__name__)


class ConfirmationStatus(str, Enum):
    """Status of transaction confirmation."""
    PENDING = "pending"  # No receipt yet
    MINED = "mined"      # Receipt available
    FAILED = "failed"    # Receipt reports failure


@dataclass
class ConfirmationState:
    """What the poll loop last observed for one transaction."""
    tx_hash: str
    last_known_receipt: Optional[TransactionReceipt] = None
    last_known_confirmations: int = 0
    status: ConfirmationStatus = ConfirmationStatus.PENDING
    reorg_count: int = 0
    poll_count: int = 0
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Waiter = Tuple[int, "asyncio.Future[TransactionReceipt]"]


class ConfirmationTracker:
    """
    Tracks one submitted transaction until its waiters are satisfied.

    The poll loop is the only writer of :attr:`state`. It runs while at least
    one waiter is outstanding and stops once all are resolved or cancelled.
    """

    def __init__(
        self,
        tx_hash: str,
        rpc: RPCClient,
        config: Optional[ConfirmationConfig] = None,
        chain_logger: Optional[ChainLogger] = None,
    ):
        self._rpc = rpc
        self._config = config or get_config().confirmation
        self._chain_logger = chain_logger or ChainLogger()
        self._state = ConfirmationState(tx_hash=tx_hash)
        self._waiters: List[Waiter] = []
        self._poll_task: Optional[asyncio.Task] = None

    @property
    def tx_hash(self) -> str:
        return self._state.tx_hash

    @property
    def state(self) -> ConfirmationState:
        return self._state

    async def poll_once(self) -> ConfirmationState:
        """Fetch receipt and head together and update the state."""
        receipt, current_block = await asyncio.gather(
            self._rpc.get_transaction_receipt(self.tx_hash),
            self._rpc.get_block_number(),
        )
        state = self._state
        previous = state.last_known_receipt
        previous_confirmations = state.last_known_confirmations

        if receipt is None:
            confirmations = 0
        else:
            confirmations = max(0, current_block - receipt.block_number)

        reorged = previous is not None and (
            receipt is None
            or receipt.block_hash != previous.block_hash
            or confirmations < previous_confirmations
        )
        if reorged:
            state.reorg_count += 1
            self._chain_logger.log_reorg_detected(
                tx_hash=self.tx_hash,
                previous_block=previous.block_number,
                current_block=receipt.block_number if receipt else None,
                previous_confirmations=previous_confirmations,
                current_confirmations=confirmations,
            )

        state.last_known_receipt = receipt
        state.last_known_confirmations = confirmations
        state.poll_count += 1
        state.last_updated = datetime.now(timezone.utc)
        if receipt is None:
            state.status = ConfirmationStatus.PENDING
        elif receipt.failed:
            state.status = ConfirmationStatus.FAILED
        else:
            state.status = ConfirmationStatus.MINED
        return state

    async def wait_for(self, min_confirmations: int = 0) -> TransactionReceipt:
        """
        Wait until the receipt is at least ``min_confirmations`` blocks deep.

        Raises:
            TransactionFailedError: If the receipt reports failure
        """
        if min_confirmations < 0:
            raise ValueError("min_confirmations must be non-negative")
        cap = self._config.max_confirmations
        if cap is not None and min_confirmations > cap:
            min_confirmations = cap

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._waiters.append((min_confirmations, future))
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.ensure_future(self._poll_loop())
        return await future

    async def _poll_loop(self) -> None:
        while True:
            self._waiters = [(n, f) for n, f in self._waiters if not f.done()]
            if not self._waiters:
                return

            try:
                state = await self.poll_once()
            except Exception as e:
                logger.warning(f"Polling {self.tx_hash} failed: {e}")
                self._fail_waiters(e)
                return

            receipt = state.last_known_receipt
            if receipt is not None:
                if receipt.failed:
                    self._chain_logger.log_transaction_failed(
                        self.tx_hash, f"reverted in block {receipt.block_number}"
                    )
                    self._fail_waiters(TransactionFailedError(self.tx_hash, receipt))
                    return
                self._resolve_waiters(receipt, state.last_known_confirmations)

            if any(not f.done() for _, f in self._waiters):
                await asyncio.sleep(self._config.poll_interval_seconds)

    def _resolve_waiters(self, receipt: TransactionReceipt, confirmations: int) -> None:
        for min_confirmations, future in self._waiters:
            if future.done() or confirmations < min_confirmations:
                continue
            future.set_result(receipt)
            if min_confirmations > 0:
                self._chain_logger.log_transaction_confirmed(
                    self.tx_hash, receipt.block_number, confirmations
                )
            else:
                logger.debug(f"Transaction {self.tx_hash} mined in block {receipt.block_number}")

    def _fail_waiters(self, exc: BaseException) -> None:
        for _, future in self._waiters:
            if not future.done():
                future.set_exception(exc)
        self._waiters = []


class PendingTransaction:
    """
    Handle on a transaction being submitted.

    Observation points:
    - ``await handle.transaction_hash()``: submitted
    - ``await handle.receipt()`` or ``await handle``: mined
    - ``await handle.confirmed(n)``: at least ``n`` blocks on top of the receipt's block
    """

    def __init__(
        self,
        submission: "asyncio.Future[str]",
        rpc: RPCClient,
        config: Optional[ConfirmationConfig] = None,
        chain_logger: Optional[ChainLogger] = None,
    ):
        self._submission = submission
        self._rpc = rpc
        self._config = config or get_config().confirmation
        self._chain_logger = chain_logger or ChainLogger()
        self._tracker: Optional[ConfirmationTracker] = None
        self._submission.add_done_callback(self._on_submitted)

    def _on_submitted(self, submission: "asyncio.Future[str]") -> None:
        if submission.cancelled():
            return
        exc = submission.exception()
        if exc is not None:
            self._chain_logger.log_transaction_failed(None, f"submission failed: {exc}")

    @property
    def tracker(self) -> Optional[ConfirmationTracker]:
        return self._tracker

    async def transaction_hash(self) -> str:
        """Resolves once the node accepts the transaction."""
        return await asyncio.shield(self._submission)

    async def _get_tracker(self) -> ConfirmationTracker:
        tx_hash = await self.transaction_hash()
        if self._tracker is None:
            self._tracker = ConfirmationTracker(
                tx_hash, self._rpc, self._config, self._chain_logger
            )
        return self._tracker

    async def receipt(self) -> TransactionReceipt:
        """Resolves once the transaction is mined."""
        return await self.confirmed(0)

    async def confirmed(self, confirmations: int = 1) -> TransactionReceipt:
        """Resolves once ``confirmations`` blocks have been mined on top of the receipt's block."""
        tracker = await self._get_tracker()
        return await tracker.wait_for(confirmations)

    def __await__(self) -> Generator[Any, None, TransactionReceipt]:
        return self.receipt().__await__()
