"""
Tests for flexether.transactions.

Tests cover:
- Caller and destination checks
- Nonce, fee, gas and chain id completion
- Locally signed and node-signed submission
- call and estimate_gas through the shared pipeline
"""
from __future__ import annotations

from unittest.mock import AsyncMock, call

import pytest
from eth_account import Account

from flexether.config import FlexEtherConfig
from flexether.confirmation import PendingTransaction
from flexether.exceptions import CannotDetermineCallerError, NoDestinationError
from flexether.gas import GasPricer
from flexether.hardforks import RuleSet
from flexether.resolver import NameResolver
from flexether.rpc_client import RPCClient
from flexether.signing import LocalKeySigner, TransactionSigner, address_for_key
from flexether.transactions import TransactionManager, TransactionOptions

from node_helpers import FakeNode, make_block

GWEI = 10**9
SENDER = "0x" + "33" * 20
OTHER = "0x" + "55" * 20
RECIPIENT = "0x" + "22" * 20
TX_HASH = "0x" + "ab" * 32


class RecordingSigner(TransactionSigner):
    """Local key signer that keeps what it was asked to sign."""

    def __init__(self, private_key):
        self._inner = LocalKeySigner(private_key)
        self.signed = []

    def get_address(self) -> str:
        return self._inner.get_address()

    async def sign_transaction(self, tx, rule_set):
        self.signed.append((tx, rule_set))
        return await self._inner.sign_transaction(tx, rule_set)


def make_manager(node, config: FlexEtherConfig, signer=None) -> TransactionManager:
    rpc = RPCClient(node, config)
    return TransactionManager(
        rpc,
        NameResolver(rpc, config.name_resolution),
        GasPricer(rpc, config.gas),
        config,
        signer=signer,
    )


@pytest.fixture
def sepolia_node():
    """Fee-market chain with a 10 gwei base fee."""
    raw_sent = []

    def send_raw(params):
        raw_sent.append(params[0])
        return TX_HASH

    node = FakeNode({
        "eth_chainId": hex(11155111),
        "eth_blockNumber": hex(100),
        "eth_accounts": [],
        "eth_getTransactionCount": "0x7",
        "eth_gasPrice": hex(20 * GWEI),
        "eth_maxPriorityFeePerGas": hex(2 * GWEI),
        "eth_getBlockByNumber": make_block(100, base_fee=10 * GWEI),
        "eth_estimateGas": hex(21_000),
        "eth_sendRawTransaction": send_raw,
    })
    node.raw_sent = raw_sent
    return node


@pytest.fixture
def legacy_node(node):
    """Pre-berlin mainnet with one node-managed account."""
    node.on("eth_accounts", [SENDER, OTHER])
    node.on("eth_getTransactionCount", "0x0")
    node.on("eth_gasPrice", hex(100 * GWEI))
    node.on("eth_estimateGas", hex(21_000))
    node.on("eth_sendTransaction", TX_HASH)
    return node


class TestPreconditions:
    """Tests for caller and destination checks."""

    @pytest.mark.asyncio
    async def test_no_caller(self, node, config):
        manager = make_manager(node, config)

        with pytest.raises(CannotDetermineCallerError):
            await manager.submit(RECIPIENT)

        assert node.methods() == ["eth_accounts"]

    @pytest.mark.asyncio
    async def test_caller_checked_before_destination(self, node, config):
        manager = make_manager(node, config)

        with pytest.raises(CannotDetermineCallerError):
            await manager.submit(None)

    @pytest.mark.asyncio
    async def test_no_destination(self, node, config, private_key):
        manager = make_manager(node, config)

        with pytest.raises(NoDestinationError):
            await manager.submit(None, TransactionOptions(key=private_key))

        assert node.calls == []

    @pytest.mark.asyncio
    async def test_account_index_out_of_range(self, legacy_node, config):
        manager = make_manager(legacy_node, config)

        with pytest.raises(CannotDetermineCallerError):
            await manager.submit(RECIPIENT, TransactionOptions(from_address=5))

    @pytest.mark.asyncio
    async def test_submission_failure_surfaces_on_handle(self, node, config, private_key):
        manager = make_manager(node, config)

        pending = manager.send(None, TransactionOptions(key=private_key))

        with pytest.raises(NoDestinationError):
            await pending.transaction_hash()


class TestSignedSubmission:
    """Tests for locally signed transactions."""

    @pytest.mark.asyncio
    async def test_fee_market_send(self, sepolia_node, config, private_key):
        signer = RecordingSigner(private_key)
        manager = make_manager(sepolia_node, config, signer=signer)

        tx_hash = await manager.submit(RECIPIENT, TransactionOptions(value=10**15))

        assert tx_hash == TX_HASH
        sender = address_for_key(private_key)
        assert sepolia_node.params_for("eth_getTransactionCount") == [[sender, "pending"]]

        (tx, rule_set), = signer.signed
        assert rule_set is RuleSet.FEE_MARKET
        assert tx.nonce == 7
        assert tx.chain_id == 11155111
        assert tx.gas == 34_860
        assert tx.gas_price is None
        assert tx.max_priority_fee_per_gas == 1_990_000_000
        assert tx.max_fee_per_gas == 9_950_000_000 + 1_990_000_000

        (raw,) = sepolia_node.raw_sent
        assert raw.startswith("0x02")
        assert Account.recover_transaction(raw) == sender
        assert "eth_sendTransaction" not in sepolia_node.methods()

    @pytest.mark.asyncio
    async def test_key_option(self, sepolia_node, config, private_key):
        manager = make_manager(sepolia_node, config)

        await manager.submit(RECIPIENT, TransactionOptions(key=private_key))

        (raw,) = sepolia_node.raw_sent
        assert Account.recover_transaction(raw) == address_for_key(private_key)

    @pytest.mark.asyncio
    async def test_explicit_gas_price_on_fee_market_chain(self, sepolia_node, config, private_key):
        signer = RecordingSigner(private_key)
        manager = make_manager(sepolia_node, config, signer=signer)

        await manager.submit(RECIPIENT, TransactionOptions(gas_price=3 * GWEI))

        (tx, _), = signer.signed
        assert tx.gas_price == 3 * GWEI
        assert not tx.uses_fee_market
        assert sepolia_node.raw_sent[0].startswith("0x01")
        assert "eth_maxPriorityFeePerGas" not in sepolia_node.methods()

    @pytest.mark.asyncio
    async def test_partial_fee_market_fields_completed(self, sepolia_node, config, private_key):
        signer = RecordingSigner(private_key)
        manager = make_manager(sepolia_node, config, signer=signer)

        await manager.submit(
            RECIPIENT,
            TransactionOptions(max_priority_fee_per_gas=GWEI, gas_price_bonus=0),
        )

        (tx, _), = signer.signed
        assert tx.max_priority_fee_per_gas == GWEI
        assert tx.max_fee_per_gas == 12 * GWEI

    @pytest.mark.asyncio
    async def test_fee_market_fields_priced_as_legacy_before_london(
        self, node, config, private_key
    ):
        raw_sent = []

        def send_raw(params):
            raw_sent.append(params[0])
            return TX_HASH

        node.on("eth_getTransactionCount", "0x0")
        node.on("eth_gasPrice", hex(100 * GWEI))
        node.on("eth_estimateGas", hex(21_000))
        node.on("eth_sendRawTransaction", send_raw)
        signer = RecordingSigner(private_key)
        manager = make_manager(node, config, signer=signer)

        await manager.submit(
            RECIPIENT,
            TransactionOptions(max_fee_per_gas=5 * GWEI, max_priority_fee_per_gas=GWEI),
        )

        (tx, rule_set), = signer.signed
        assert rule_set is RuleSet.LEGACY
        assert tx.gas_price == 99_500_000_000
        assert not tx.uses_fee_market
        (raw,) = raw_sent
        assert not raw.startswith("0x01")
        assert not raw.startswith("0x02")
        assert Account.recover_transaction(raw) == address_for_key(private_key)
        assert "eth_maxPriorityFeePerGas" not in node.methods()

    @pytest.mark.asyncio
    async def test_explicit_nonce_and_gas_skip_lookups(self, sepolia_node, config, private_key):
        signer = RecordingSigner(private_key)
        manager = make_manager(sepolia_node, config, signer=signer)

        await manager.submit(RECIPIENT, TransactionOptions(nonce=42, gas=50_000))

        (tx, _), = signer.signed
        assert tx.nonce == 42
        assert tx.gas == 50_000
        assert "eth_getTransactionCount" not in sepolia_node.methods()
        assert "eth_estimateGas" not in sepolia_node.methods()


class TestNodeSignedSubmission:
    """Tests for eth_sendTransaction submission."""

    @pytest.mark.asyncio
    async def test_legacy_send(self, legacy_node, config):
        manager = make_manager(legacy_node, config)

        pending = manager.send(RECIPIENT)
        assert isinstance(pending, PendingTransaction)
        assert await pending.transaction_hash() == TX_HASH

        (params,) = legacy_node.params_for("eth_sendTransaction")
        assert params == [{
            "to": RECIPIENT,
            "from": SENDER,
            "gas": hex(34_860),
            "gasPrice": hex(99_500_000_000),
            "value": "0x0",
            "nonce": "0x0",
        }]
        assert "eth_sendRawTransaction" not in legacy_node.methods()

    @pytest.mark.asyncio
    async def test_transfer_sets_value(self, legacy_node, config):
        manager = make_manager(legacy_node, config)

        pending = manager.transfer(RECIPIENT, 10**18, TransactionOptions(value=5))
        await pending.transaction_hash()

        (params,) = legacy_node.params_for("eth_sendTransaction")
        assert params[0]["value"] == hex(10**18)

    @pytest.mark.asyncio
    async def test_account_index_as_caller(self, legacy_node, config):
        manager = make_manager(legacy_node, config)

        await manager.submit(RECIPIENT, TransactionOptions(from_address=1))

        (params,) = legacy_node.params_for("eth_sendTransaction")
        assert params[0]["from"] == OTHER

    @pytest.mark.asyncio
    async def test_contract_creation(self, legacy_node, config):
        manager = make_manager(legacy_node, config)

        await manager.submit(None, TransactionOptions(data="0x6000"))

        (params,) = legacy_node.params_for("eth_sendTransaction")
        assert "to" not in params[0]
        assert params[0]["data"] == "0x6000"


class TestNameResolution:
    """Tests for names in ``to`` and ``from``."""

    @pytest.mark.asyncio
    async def test_destination_resolved_before_caller(self, legacy_node, config):
        manager = make_manager(legacy_node, config)
        manager._resolver.resolve = AsyncMock(return_value=OTHER)

        tx = await manager.build_request("wallet.eth", TransactionOptions(from_address="me.eth"))

        assert tx.to == OTHER
        assert tx.from_address == OTHER
        assert manager._resolver.resolve.await_args_list == [call("wallet.eth"), call("me.eth")]

    @pytest.mark.asyncio
    async def test_contract_creation_skips_resolution(self, legacy_node, config):
        manager = make_manager(legacy_node, config)
        manager._resolver.resolve = AsyncMock()

        tx = await manager.build_request(None, TransactionOptions(data="0x6000"))

        manager._resolver.resolve.assert_not_awaited()
        assert tx.from_address == SENDER


class TestCallAndEstimate:
    """Tests for call and estimate_gas."""

    @pytest.mark.asyncio
    async def test_call(self, node, config):
        node.on("eth_call", "0xbeef")
        manager = make_manager(node, config)

        result = await manager.call(RECIPIENT, TransactionOptions(data="0x1234"))

        assert result == "0xbeef"
        assert node.params_for("eth_call") == [[
            {"to": RECIPIENT, "value": "0x0", "data": "0x1234"},
            "latest",
        ]]

    @pytest.mark.asyncio
    async def test_call_needs_destination(self, node, config):
        manager = make_manager(node, config)

        with pytest.raises(NoDestinationError):
            await manager.call(None)

    @pytest.mark.asyncio
    async def test_estimate_gas(self, legacy_node, config):
        manager = make_manager(legacy_node, config)

        assert await manager.estimate_gas(RECIPIENT) == 34_860
        assert await manager.estimate_gas(RECIPIENT, TransactionOptions(gas_bonus=0)) == 21_000

    @pytest.mark.asyncio
    async def test_estimate_gas_needs_destination(self, node, config):
        manager = make_manager(node, config)

        with pytest.raises(NoDestinationError):
            await manager.estimate_gas(None)
