"""Unified exception hierarchy for flexether.

All flexether exceptions inherit from FlexEtherError, enabling:
- Consistent error handling across the RPC, resolution and transaction layers
- Structured error payloads with machine-readable error codes
- Recovery of revert data from failed calls

Usage:
    from flexether.exceptions import FlexEtherError, RPCError

    try:
        await eth.call(contract, data=calldata)
    except RPCError as e:
        revert_data = e.error_return_data

All exceptions have:
- error_code: Machine-readable error code (e.g., "VALIDATION_ERROR")
- message: Human-readable error message
- details: Optional additional context dictionary
- to_dict(): Convert to a serializable payload
"""
from __future__ import annotations

import json
from typing import Any, Optional


class FlexEtherError(Exception):
    """Base exception for all flexether errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Optional additional context
    """

    error_code: str = "FLEXETHER_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a serializable payload."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Validation Errors (local, never retried)
# =============================================================================

class ValidationError(FlexEtherError):
    """Malformed input detected before any network call."""

    error_code = "VALIDATION_ERROR"
    kind = "value"

    def __init__(self, value: Any, details: Optional[dict[str, Any]] = None) -> None:
        details = details or {}
        details["value"] = repr(value)
        super().__init__(f"Invalid {self.kind}: {_describe(value)}", details=details)
        self.value = value


class InvalidAddressError(ValidationError):
    error_code = "INVALID_ADDRESS"
    kind = "address"


class InvalidHashError(ValidationError):
    error_code = "INVALID_HASH"
    kind = "hash"


class InvalidBlockNumberError(ValidationError):
    error_code = "INVALID_BLOCK_NUMBER"
    kind = "block number"


class InvalidBytesError(ValidationError):
    error_code = "INVALID_BYTES"
    kind = "bytes"


class InvalidUnsignedError(ValidationError):
    error_code = "INVALID_UNSIGNED"
    kind = "unsigned number"


class InvalidNameError(ValidationError):
    error_code = "INVALID_NAME"
    kind = "name"


def _describe(value: Any) -> str:
    if isinstance(value, bytes):
        return "0x" + value.hex()
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return repr(value)


# =============================================================================
# RPC Errors
# =============================================================================

class RPCTransportError(FlexEtherError):
    """The transport failed to deliver a request or return a response."""

    error_code = "RPC_TRANSPORT_ERROR"

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if method:
            details["method"] = method
        super().__init__(message, details=details)
        self.method = method


class RPCCorrelationError(RPCTransportError):
    """A response arrived carrying an id other than the request's."""

    error_code = "RPC_CORRELATION_MISMATCH"

    def __init__(self, method: str, expected_id: int, received_id: Any) -> None:
        super().__init__(
            f"Expected RPC id={expected_id} but got id={received_id!r}",
            method=method,
            details={"expected_id": expected_id, "received_id": received_id},
        )
        self.expected_id = expected_id
        self.received_id = received_id


class RPCError(FlexEtherError):
    """The node answered with an error object."""

    error_code = "RPC_ERROR"

    def __init__(
        self,
        message: str,
        method: str,
        params: Optional[list[Any]] = None,
        code: Optional[int] = None,
        remote_message: Optional[str] = None,
        error_return_data: Any = None,
    ) -> None:
        details: dict[str, Any] = {"method": method}
        if code is not None:
            details["code"] = code
        if remote_message:
            details["rpc_error"] = remote_message
        if error_return_data is not None:
            details["error_return_data"] = error_return_data
        super().__init__(message, details=details)
        self.method = method
        self.params = params or []
        self.code = code
        self.remote_message = remote_message
        self.error_return_data = error_return_data


# =============================================================================
# Name Resolution Errors
# =============================================================================

class ResolutionError(FlexEtherError):
    """Base class for name resolution failures."""

    error_code = "RESOLUTION_ERROR"

    def __init__(
        self,
        message: str,
        name: Optional[str] = None,
        chain_id: Optional[int] = None,
    ) -> None:
        details: dict[str, Any] = {}
        if name is not None:
            details["name"] = name
        if chain_id is not None:
            details["chain_id"] = chain_id
        super().__init__(message, details=details)
        self.name = name
        self.chain_id = chain_id


class UnsupportedChainError(ResolutionError):
    error_code = "UNSUPPORTED_CHAIN"

    def __init__(self, chain_id: int) -> None:
        super().__init__(
            f"Name resolution is not supported on chain ID {chain_id}",
            chain_id=chain_id,
        )


class NoResolverError(ResolutionError):
    error_code = "NO_RESOLVER"

    def __init__(self, name: str, chain_id: Optional[int] = None) -> None:
        super().__init__(f'No resolver for name: "{name}"', name=name, chain_id=chain_id)


class ResolutionFailedError(ResolutionError):
    error_code = "RESOLUTION_FAILED"

    def __init__(self, name: str, chain_id: Optional[int] = None) -> None:
        super().__init__(f'Failed to resolve name: "{name}"', name=name, chain_id=chain_id)


# =============================================================================
# Transaction Errors
# =============================================================================

class TransactionConstructionError(FlexEtherError):
    """A transaction could not be assembled; nothing was submitted."""

    error_code = "TRANSACTION_CONSTRUCTION_ERROR"


class NoDestinationError(TransactionConstructionError):
    error_code = "NO_DESTINATION"

    def __init__(self) -> None:
        super().__init__("Transaction has no destination.")


class CannotDetermineCallerError(TransactionConstructionError):
    error_code = "CANNOT_DETERMINE_CALLER"

    def __init__(self) -> None:
        super().__init__("Cannot determine caller.")


class TransactionFailedError(FlexEtherError):
    """A mined transaction's receipt reports failure."""

    error_code = "TRANSACTION_FAILED"

    def __init__(self, tx_hash: str, receipt: Any = None) -> None:
        details: dict[str, Any] = {"tx_hash": tx_hash}
        block_number = getattr(receipt, "block_number", None)
        if block_number is not None:
            details["block_number"] = block_number
        super().__init__(f"Transaction {tx_hash} failed on-chain", details=details)
        self.tx_hash = tx_hash
        self.receipt = receipt
