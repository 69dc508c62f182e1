"""
Configuration management for flexether.

Provides centralized configuration for:
- Gas and gas price bonuses
- Name resolution cache bounds
- Confirmation polling
- HTTP transport timeouts
- Logging configuration
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)

ONE_HOUR_MS = 60 * 60 * 1000
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class GasConfig:
    """Configuration for gas limit and fee pricing."""
    # Fractional bonus applied to eth_estimateGas results (0.66 = +66%)
    gas_bonus: float = 0.66

    # Fractional bonus applied to network fee quotes, may be negative
    gas_price_bonus: float = -0.005

    # Upper bound on legacy gas price in wei. None = no clamp
    max_gas_price: Optional[int] = None

    # Probe eth_estimateGas with the pending block's gas limit
    use_block_gas_limit_probe: bool = True


@dataclass
class NameResolutionConfig:
    """Configuration for the name resolution cache."""
    min_ttl_ms: int = ONE_HOUR_MS
    max_ttl_ms: Optional[int] = None  # None = unbounded

    def clamp_ttl(self, ttl_ms: int) -> int:
        """Clamp a cache lifetime into [min_ttl_ms, max_ttl_ms]."""
        ttl_ms = max(ttl_ms, self.min_ttl_ms)
        if self.max_ttl_ms is not None:
            ttl_ms = min(ttl_ms, self.max_ttl_ms)
        return ttl_ms


@dataclass
class ConfirmationConfig:
    """Configuration for transaction confirmation tracking."""
    poll_interval_seconds: float = 4.0

    # Requested confirmations above this are clamped. None = uncapped
    max_confirmations: Optional[int] = None


@dataclass
class HTTPTransportConfig:
    """Configuration for the HTTP JSON-RPC transport."""
    timeout_seconds: float = 30.0
    connect_timeout_seconds: float = 10.0
    max_connections: int = 20
    max_keepalive_connections: int = 10


@dataclass
class LoggingConfig:
    """Configuration for blockchain operation logging."""
    # Log levels for different operations
    rpc_call_level: str = "DEBUG"
    transaction_level: str = "INFO"
    confirmation_level: str = "INFO"
    error_level: str = "ERROR"

    # Sensitive data handling
    mask_addresses: bool = False
    log_gas_prices: bool = True

    # Performance logging
    log_rpc_latency: bool = True


@dataclass
class FlexEtherConfig:
    """
    Master configuration for flexether.

    Supports loading from environment variables with prefix FLEXETHER_.
    """
    gas: GasConfig = field(default_factory=GasConfig)
    name_resolution: NameResolutionConfig = field(default_factory=NameResolutionConfig)
    confirmation: ConfirmationConfig = field(default_factory=ConfirmationConfig)
    http: HTTPTransportConfig = field(default_factory=HTTPTransportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    log_level: str = "INFO"


def _get_env(key: str, default: Any = None, prefix: str = "FLEXETHER_") -> Any:
    """Get environment variable with prefix."""
    return os.getenv(f"{prefix}{key}", default)


def _get_env_float(key: str, default: float) -> float:
    value = _get_env(key)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"FLEXETHER_{key} must be a number, got {value!r}") from None


def _get_env_int(key: str, default: Optional[int]) -> Optional[int]:
    value = _get_env(key)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"FLEXETHER_{key} must be an integer, got {value!r}") from None


def build_default_config() -> FlexEtherConfig:
    """Build default configuration with environment variable overrides."""
    gas = GasConfig(
        gas_bonus=_get_env_float("GAS_BONUS", GasConfig.gas_bonus),
        gas_price_bonus=_get_env_float("GAS_PRICE_BONUS", GasConfig.gas_price_bonus),
        max_gas_price=_get_env_int("MAX_GAS_PRICE", None),
    )
    if gas.gas_bonus < 0:
        logger.warning(
            f"FLEXETHER_GAS_BONUS={gas.gas_bonus} puts gas limits below the node estimate"
        )

    name_resolution = NameResolutionConfig(
        min_ttl_ms=_get_env_int("MIN_TTL_MS", ONE_HOUR_MS),
        max_ttl_ms=_get_env_int("MAX_TTL_MS", None),
    )
    if (
        name_resolution.max_ttl_ms is not None
        and name_resolution.max_ttl_ms < name_resolution.min_ttl_ms
    ):
        raise ValueError(
            f"FLEXETHER_MAX_TTL_MS ({name_resolution.max_ttl_ms}) is below "
            f"FLEXETHER_MIN_TTL_MS ({name_resolution.min_ttl_ms})"
        )

    confirmation = ConfirmationConfig(
        poll_interval_seconds=_get_env_float(
            "CONFIRMATION_POLL_INTERVAL", ConfirmationConfig.poll_interval_seconds
        ),
        max_confirmations=_get_env_int("MAX_CONFIRMATIONS", None),
    )

    http = HTTPTransportConfig(
        timeout_seconds=_get_env_float("RPC_TIMEOUT", HTTPTransportConfig.timeout_seconds),
    )

    log_level = _get_env("LOG_LEVEL", "INFO").upper()
    if log_level not in LOG_LEVELS:
        raise ValueError(
            f"FLEXETHER_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}"
        )

    return FlexEtherConfig(
        gas=gas,
        name_resolution=name_resolution,
        confirmation=confirmation,
        http=http,
        log_level=log_level,
    )


# Global configuration instance
_global_config: Optional[FlexEtherConfig] = None


def get_config() -> FlexEtherConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = build_default_config()
    return _global_config


def set_config(config: Optional[FlexEtherConfig]) -> None:
    """Set the global configuration instance. None resets to defaults."""
    global _global_config
    _global_config = config
