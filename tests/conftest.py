"""
Pytest configuration for flexether tests.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(package_src))

from flexether.config import (  # noqa: E402
    ConfirmationConfig,
    FlexEtherConfig,
    set_config,
)
from flexether.rpc_client import RPCClient  # noqa: E402

from node_helpers import FakeNode, make_block  # noqa: E402

TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"


@pytest.fixture(scope="session")
def anyio_backend():
    """Use asyncio for async tests."""
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_global_config():
    """Keep FLEXETHER_* environment out of the process-wide config."""
    set_config(FlexEtherConfig())
    yield
    set_config(None)


@pytest.fixture(autouse=True)
def restore_log_levels():
    """Undo logger level changes made by FlexEther and setup_logging."""
    loggers = [logging.getLogger(name) for name in ("flexether", "httpx", "httpcore")]
    saved = [(log, log.level) for log in loggers]
    yield
    for log, level in saved:
        log.setLevel(level)


@pytest.fixture
def config():
    """Default configuration with fast confirmation polling."""
    return FlexEtherConfig(confirmation=ConfirmationConfig(poll_interval_seconds=0.01))


@pytest.fixture
def node():
    """Mainnet-shaped node at block 100 with no accounts."""
    return FakeNode({
        "eth_chainId": "0x1",
        "eth_blockNumber": hex(100),
        "eth_accounts": [],
        "eth_getBlockByNumber": make_block(100),
    })


@pytest.fixture
def rpc(node, config):
    return RPCClient(node, config)


@pytest.fixture
def private_key():
    return TEST_PRIVATE_KEY


@pytest.fixture
def sample_eth_address():
    """Valid Ethereum address for testing."""
    return "0x1234567890123456789012345678901234567890"


@pytest.fixture
def sample_tx_hash():
    """Valid transaction hash for testing."""
    return "0x" + "a" * 64
