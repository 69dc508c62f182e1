"""Ethereum JSON-RPC client runtime exports."""

from .client import FlexEther
from .config import (
    ConfirmationConfig,
    FlexEtherConfig,
    GasConfig,
    HTTPTransportConfig,
    LoggingConfig,
    NameResolutionConfig,
    build_default_config,
    get_config,
    set_config,
)
from .confirmation import (
    ConfirmationState,
    ConfirmationStatus,
    ConfirmationTracker,
    PendingTransaction,
)
from .exceptions import (
    CannotDetermineCallerError,
    FlexEtherError,
    InvalidAddressError,
    InvalidBlockNumberError,
    InvalidBytesError,
    InvalidHashError,
    InvalidNameError,
    InvalidUnsignedError,
    NoDestinationError,
    NoResolverError,
    ResolutionError,
    ResolutionFailedError,
    RPCCorrelationError,
    RPCError,
    RPCTransportError,
    TransactionConstructionError,
    TransactionFailedError,
    UnsupportedChainError,
    ValidationError,
)
from .gas import FeeQuote, GasPricer
from .hardforks import HardforkRule, RuleSet, get_hardfork_rule
from .logging_utils import ChainLogger, setup_logging
from .models import Block, Log, Transaction, TransactionReceipt, TransactionRequest
from .resolver import NameCacheEntry, NameResolver, hash_name
from .rpc_client import RPCClient
from .signing import LocalKeySigner, TransactionSigner, address_for_key
from .transactions import TransactionManager, TransactionOptions
from .transport import (
    CallableTransport,
    CallbackTransport,
    HTTPTransport,
    Transport,
    as_transport,
)

__all__ = [
    "FlexEther",
    "ConfirmationConfig",
    "FlexEtherConfig",
    "GasConfig",
    "HTTPTransportConfig",
    "LoggingConfig",
    "NameResolutionConfig",
    "build_default_config",
    "get_config",
    "set_config",
    "ConfirmationState",
    "ConfirmationStatus",
    "ConfirmationTracker",
    "PendingTransaction",
    "CannotDetermineCallerError",
    "FlexEtherError",
    "InvalidAddressError",
    "InvalidBlockNumberError",
    "InvalidBytesError",
    "InvalidHashError",
    "InvalidNameError",
    "InvalidUnsignedError",
    "NoDestinationError",
    "NoResolverError",
    "ResolutionError",
    "ResolutionFailedError",
    "RPCCorrelationError",
    "RPCError",
    "RPCTransportError",
    "TransactionConstructionError",
    "TransactionFailedError",
    "UnsupportedChainError",
    "ValidationError",
    "FeeQuote",
    "GasPricer",
    "HardforkRule",
    "RuleSet",
    "get_hardfork_rule",
    "ChainLogger",
    "setup_logging",
    "Block",
    "Log",
    "Transaction",
    "TransactionReceipt",
    "TransactionRequest",
    "NameCacheEntry",
    "NameResolver",
    "hash_name",
    "RPCClient",
    "LocalKeySigner",
    "TransactionSigner",
    "address_for_key",
    "TransactionManager",
    "TransactionOptions",
    "CallableTransport",
    "CallbackTransport",
    "HTTPTransport",
    "Transport",
    "as_transport",
]
