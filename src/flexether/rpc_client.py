"""
JSON-RPC client for Ethereum-compatible nodes.

Features:
- Request/response correlation by numeric id
- Structured error extraction, including revert data from simulated calls
- Checksummed addresses and arbitrary-precision quantities on every record
- Memoized chain id
- Thin typed wrappers over the eth_* namespace
"""
from __future__ import annotations

import json
import logging
import random
import time
from typing import Any, Dict, List, Optional, Sequence, Union

from .config import FlexEtherConfig, get_config
from .exceptions import RPCCorrelationError, RPCError, RPCTransportError
from .logging_utils import ChainLogger
from .models import Block, Log, Transaction, TransactionReceipt, TransactionRequest
from .transport import Transport, as_transport
from .utils import (
    as_address,
    as_block_number,
    as_bytes,
    as_hash,
    is_hash,
    to_hex,
    to_int,
    to_word,
)

logger = logging.getLogger(__name__)

PARAMS_SUMMARY_LENGTH = 64

BlockRef = Union[int, str, None]
StateOverrides = Dict[str, Dict[str, Any]]


def _summarize_params(params: Sequence[Any]) -> str:
    encoded = json.dumps(params, separators=(",", ":"), default=str)
    if len(encoded) > PARAMS_SUMMARY_LENGTH:
        return encoded[:PARAMS_SUMMARY_LENGTH] + "..."
    return encoded


def extract_error_return_data(data: Any) -> Any:
    """Pull revert bytes out of an RPC error's ``data`` member.

    Some nodes report simulated-call failures as ``{<tx hash>: {"return": ...}}``;
    others send the revert bytes directly.
    """
    if not data:
        return None
    if isinstance(data, dict):
        tx_keys = [k for k in data if isinstance(k, str) and k.startswith("0x")]
        if tx_keys:
            inner = data[tx_keys[0]]
            if isinstance(inner, dict) and inner.get("return"):
                return inner["return"]
    return data


def encode_state_override(override: Dict[str, Any]) -> Dict[str, Any]:
    """Encode one account's state override for eth_call."""
    encoded = dict(override)
    for key in ("balance", "nonce"):
        if override.get(key) is not None:
            encoded[key] = to_hex(override[key])
    if override.get("code") is not None:
        encoded["code"] = as_bytes(override["code"])
    for key, wire_key in (("state", "state"), ("state_diff", "stateDiff"), ("stateDiff", "stateDiff")):
        slots = override.get(key)
        if slots is None:
            continue
        encoded.pop(key, None)
        encoded[wire_key] = {to_word(slot): to_word(value) for slot, value in slots.items()}
    return encoded


class RPCClient:
    """
    Typed JSON-RPC client over a :class:`Transport`.

    The client owns only two pieces of mutable state: the request id counter
    and the memoized chain id. The transport may be shared with other clients.
    """

    def __init__(
        self,
        transport: Any,
        config: Optional[FlexEtherConfig] = None,
        chain_logger: Optional[ChainLogger] = None,
    ):
        self._config = config or get_config()
        self._transport: Transport = as_transport(transport)
        self._chain_logger = chain_logger or ChainLogger(config=self._config.logging)
        self._request_id = random.randrange(1 << 31)
        self._chain_id: Optional[int] = None

    @property
    def transport(self) -> Transport:
        return self._transport

    def _next_id(self) -> int:
        self._request_id = (self._request_id + 1) % (1 << 53)
        return self._request_id

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Issue one JSON-RPC call and return its ``result``.

        Raises:
            RPCTransportError: If the transport fails
            RPCCorrelationError: If the response id differs from the request id
            RPCError: If the node returns an error object
        """
        params = list(params or [])
        request_id = self._next_id()
        envelope = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": params,
        }

        start_time = time.perf_counter()
        try:
            response = await self._transport.send(envelope)
        except RPCTransportError:
            self._log_call(method, request_id, start_time, success=False)
            raise
        except (OSError, ValueError, TypeError) as e:
            self._log_call(method, request_id, start_time, success=False, error_message=str(e))
            raise RPCTransportError(f"Transport failed for {method}: {e}", method=method) from e

        if not isinstance(response, dict):
            self._log_call(method, request_id, start_time, success=False)
            raise RPCTransportError(
                f"Malformed response for {method}: {response!r}", method=method
            )

        if response.get("id") != request_id:
            self._log_call(method, request_id, start_time, success=False)
            raise RPCCorrelationError(method, request_id, response.get("id"))

        error = response.get("error")
        if error is not None:
            if not isinstance(error, dict):
                error = {"message": str(error)}
            remote_message = error.get("message")
            error_return_data = extract_error_return_data(error.get("data"))
            parts = [
                f"method={json.dumps(method)}",
                f"params={_summarize_params(params)}",
                f'error="{remote_message}"',
            ]
            if error_return_data:
                parts.append(f"errorData={error_return_data}")
            self._log_call(
                method, request_id, start_time, success=False,
                error_code=error.get("code"), error_message=remote_message,
            )
            raise RPCError(
                ", ".join(parts),
                method=method,
                params=params,
                code=error.get("code"),
                remote_message=remote_message,
                error_return_data=error_return_data,
            )

        self._log_call(method, request_id, start_time, success=True)
        return response.get("result")

    def _log_call(
        self,
        method: str,
        request_id: int,
        start_time: float,
        success: bool,
        error_code: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> None:
        self._chain_logger.log_rpc_call(
            method=method,
            request_id=request_id,
            duration_ms=(time.perf_counter() - start_time) * 1000,
            success=success,
            chain_id=self._chain_id,
            error_code=error_code,
            error_message=error_message,
        )

    # =========================================================================
    # Accounts and state
    # =========================================================================

    async def get_chain_id(self) -> int:
        """Get chain ID (cached after first fetch)."""
        if self._chain_id is None:
            self._chain_id = to_int(await self.request("eth_chainId"))
        return self._chain_id

    async def get_accounts(self) -> List[str]:
        result = await self.request("eth_accounts")
        return [as_address(a) for a in result or []]

    async def get_default_account(self) -> Optional[str]:
        """First provider-managed account, or None."""
        accounts = await self.get_accounts()
        return accounts[0] if accounts else None

    async def get_transaction_count(self, address: str, block: BlockRef = "latest") -> int:
        result = await self.request(
            "eth_getTransactionCount",
            [as_address(address), as_block_number(block)],
        )
        return to_int(result)

    async def get_balance(self, address: str, block: BlockRef = "latest") -> int:
        """Get native balance in wei."""
        result = await self.request(
            "eth_getBalance",
            [as_address(address), as_block_number(block)],
        )
        return to_int(result)

    async def get_code(self, address: str, block: BlockRef = "latest") -> str:
        result = await self.request(
            "eth_getCode",
            [as_address(address), as_block_number(block)],
        )
        return as_bytes(result)

    async def get_logs(
        self,
        from_block: BlockRef = None,
        to_block: BlockRef = None,
        address: Optional[str] = None,
        block_hash: Optional[str] = None,
        topics: Optional[Sequence[Any]] = None,
    ) -> List[Log]:
        """
        Query event logs.

        ``None`` entries in ``topics`` are wildcards; a nested list matches
        any of its members.
        """
        log_filter: Dict[str, Any] = {}
        if from_block is not None:
            log_filter["fromBlock"] = as_block_number(from_block)
        if to_block is not None:
            log_filter["toBlock"] = as_block_number(to_block)
        if address is not None:
            log_filter["address"] = as_address(address)
        if block_hash is not None:
            log_filter["blockhash"] = as_hash(block_hash)
        log_filter["topics"] = [_encode_topic(t) for t in topics or []]

        result = await self.request("eth_getLogs", [log_filter])
        return [Log.from_rpc(entry) for entry in result or []]

    # =========================================================================
    # Fees and blocks
    # =========================================================================

    async def get_gas_price(self) -> int:
        """Get current gas price in wei."""
        return to_int(await self.request("eth_gasPrice"))

    async def get_max_priority_fee_per_gas(self) -> int:
        return to_int(await self.request("eth_maxPriorityFeePerGas"))

    async def get_block_number(self) -> int:
        """Get current block number."""
        return to_int(await self.request("eth_blockNumber"))

    async def get_block(self, number_or_hash: BlockRef = "latest") -> Optional[Block]:
        """Get a block by hash, number or tag (transaction hashes only)."""
        if is_hash(number_or_hash):
            result = await self.request(
                "eth_getBlockByHash", [as_hash(number_or_hash), False]
            )
        else:
            result = await self.request(
                "eth_getBlockByNumber", [as_block_number(number_or_hash), False]
            )
        return Block.from_rpc(result) if result else None

    # =========================================================================
    # Execution
    # =========================================================================

    async def estimate_gas(self, tx: TransactionRequest, block: BlockRef = "latest") -> int:
        """Estimate gas for a transaction."""
        block_param = as_block_number(block)
        params: List[Any] = [tx.to_rpc()]
        # Some providers reject a trailing block argument
        if block_param != "latest":
            params.append(block_param)
        return to_int(await self.request("eth_estimateGas", params))

    async def call(
        self,
        tx: TransactionRequest,
        block: BlockRef = "latest",
        overrides: Optional[StateOverrides] = None,
    ) -> str:
        """Execute a call without creating a transaction. Returns raw output bytes."""
        params: List[Any] = [tx.to_rpc(), as_block_number(block)]
        if overrides:
            params.append({
                as_address(address): encode_state_override(override)
                for address, override in overrides.items()
            })
        return await self.request("eth_call", params)

    async def send_transaction(self, tx: TransactionRequest) -> str:
        """Submit an unsigned transaction for the node to sign."""
        result = await self.request("eth_sendTransaction", [tx.to_rpc(include_nonce=True)])
        return as_hash(result)

    async def send_raw_transaction(self, raw: Union[str, bytes]) -> str:
        """Broadcast a signed transaction."""
        result = await self.request("eth_sendRawTransaction", [as_bytes(raw)])
        return as_hash(result)

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        result = await self.request("eth_getTransactionReceipt", [as_hash(tx_hash)])
        return TransactionReceipt.from_rpc(result) if result else None

    async def get_transaction(self, tx_hash: str) -> Optional[Transaction]:
        result = await self.request("eth_getTransactionByHash", [as_hash(tx_hash)])
        return Transaction.from_rpc(result) if result else None

    async def close(self) -> None:
        """Close the underlying transport."""
        await self._transport.close()

    async def __aenter__(self) -> "RPCClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def _encode_topic(topic: Any) -> Any:
    if topic is None:
        return None
    if isinstance(topic, (list, tuple)):
        return [_encode_topic(t) for t in topic]
    if isinstance(topic, str) and is_hash(topic):
        return topic.lower()
    return to_word(topic)
