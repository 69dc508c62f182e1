"""
Tests for flexether.logging_utils.

Tests cover:
- Bounded transaction and RPC call history
- RPC and transaction metrics
- Address masking
- Logger level setup
"""
from __future__ import annotations

import logging

import pytest

from flexether.config import LoggingConfig
from flexether.logging_utils import ChainLogger, mask_address, setup_logging

SENDER = "0x" + "33" * 20
RECIPIENT = "0x" + "22" * 20


def tx_hash(n: int) -> str:
    return "0x" + f"{n:064x}"


def submit(chain_logger: ChainLogger, n: int) -> None:
    chain_logger.log_transaction_submitted(
        tx_hash=tx_hash(n),
        chain_id=1,
        from_address=SENDER,
        to_address=RECIPIENT,
        value_wei=0,
        nonce=n,
        gas_limit=21_000,
        fee_mode="legacy",
    )


class TestHistory:
    """Tests for the retained history."""

    def test_transactions_bounded(self):
        chain_logger = ChainLogger(config=LoggingConfig(), max_history=3)

        for n in range(5):
            submit(chain_logger, n)

        assert list(chain_logger._transactions) == [tx_hash(2), tx_hash(3), tx_hash(4)]
        assert chain_logger.get_transaction_metrics()["total_transactions"] == 3

    def test_resubmitted_hash_is_newest(self):
        chain_logger = ChainLogger(config=LoggingConfig(), max_history=2)

        submit(chain_logger, 0)
        submit(chain_logger, 1)
        submit(chain_logger, 0)
        submit(chain_logger, 2)

        assert list(chain_logger._transactions) == [tx_hash(0), tx_hash(2)]

    def test_rpc_calls_bounded(self):
        chain_logger = ChainLogger(config=LoggingConfig(), max_history=2)

        for request_id in range(4):
            chain_logger.log_rpc_call("eth_blockNumber", request_id, 1.0, True)

        assert [c.request_id for c in chain_logger._rpc_calls] == [2, 3]


class TestMetrics:
    """Tests for get_rpc_metrics and get_transaction_metrics."""

    def test_rpc_metrics_empty(self):
        assert ChainLogger(config=LoggingConfig()).get_rpc_metrics() == {"total_calls": 0}

    def test_rpc_metrics(self):
        chain_logger = ChainLogger(config=LoggingConfig())
        chain_logger.log_rpc_call("eth_chainId", 1, 10.0, True)
        chain_logger.log_rpc_call("eth_gasPrice", 2, 30.0, True)
        chain_logger.log_rpc_call("eth_call", 3, 500.0, False, error_code=3)

        assert chain_logger.get_rpc_metrics() == {
            "total_calls": 3,
            "successful_calls": 2,
            "failed_calls": 1,
            "avg_latency_ms": 20.0,
            "max_latency_ms": 30.0,
        }

    def test_rpc_latency_logging_disabled(self):
        chain_logger = ChainLogger(config=LoggingConfig(log_rpc_latency=False))
        chain_logger.log_rpc_call("eth_chainId", 1, 10.0, True)
        assert chain_logger.get_rpc_metrics() == {"total_calls": 0}

    def test_transaction_status_breakdown(self):
        chain_logger = ChainLogger(config=LoggingConfig())
        for n in range(3):
            submit(chain_logger, n)

        chain_logger.log_transaction_confirmed(tx_hash(0), block_number=100, confirmations=3)
        chain_logger.log_transaction_failed(tx_hash(1), "reverted")
        chain_logger.log_transaction_failed(None, "nonce too low")

        assert chain_logger.get_transaction_metrics() == {
            "total_transactions": 3,
            "status_breakdown": {"confirmed": 1, "failed": 1, "submitted": 1},
        }


class TestMasking:
    """Tests for address masking."""

    def test_mask_address(self):
        assert mask_address(SENDER) == "0x3333...3333"
        assert mask_address("0x12") == "0x12"

    def test_masked_submission_record(self, caplog):
        chain_logger = ChainLogger(config=LoggingConfig(mask_addresses=True))

        with caplog.at_level(logging.INFO, logger="flexether"):
            submit(chain_logger, 1)

        (record,) = [r for r in caplog.records if hasattr(r, "transaction")]
        assert record.transaction["from_address"] == "0x3333...3333"
        assert record.transaction["to_address"] == "0x2222...2222"


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_sets_package_level(self):
        setup_logging("warning")

        assert logging.getLogger("flexether").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING

    def test_debug_level(self):
        setup_logging("DEBUG", json_format=True)
        assert logging.getLogger("flexether").level == logging.DEBUG
