"""
Tests for flexether.resolver.

Tests cover:
- Name hashing (case folding, label filtering, top-level truncation)
- The three-call resolution protocol
- TTL clamping and cache expiry
- Resolution failures and unsupported chains
"""
from __future__ import annotations

import pytest

from flexether.config import NameResolutionConfig
from flexether.exceptions import (
    InvalidBytesError,
    InvalidNameError,
    NoResolverError,
    ResolutionFailedError,
    UnsupportedChainError,
)
from flexether.resolver import REGISTRY_ADDRESS, NameResolver, hash_name
from flexether.rpc_client import RPCClient

from node_helpers import FakeNode, address_word, word

RESOLVER = "0x" + "33" * 20
TARGET = "0x" + "44" * 20
NULL = "0x" + "00" * 20


def registry_call(resolver=RESOLVER, address=TARGET, ttl=3600):
    """eth_call handler emulating the registry and one resolver contract."""
    def handler(params):
        tx = params[0]
        selector = tx["data"][:10]
        if selector == "0x0178b8bf":
            assert tx["to"].lower() == REGISTRY_ADDRESS.lower()
            return address_word(resolver) if resolver is not None else "0x"
        if selector == "0x3b3b57de":
            assert tx["to"] == RESOLVER
            return address_word(address)
        if selector == "0x16a25cbd":
            assert tx["to"].lower() == REGISTRY_ADDRESS.lower()
            return word(ttl)
        raise AssertionError(f"unexpected selector {selector}")
    return handler


class FakeClock:
    def __init__(self, now_ms: float = 1_000_000.0):
        self.now_ms = now_ms

    def __call__(self) -> float:
        return self.now_ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_resolver(config, clock):
    def factory(node, name_config=None, **kwargs):
        rpc = RPCClient(node, config)
        return NameResolver(rpc, name_config or NameResolutionConfig(), clock=clock, **kwargs)
    return factory


class TestHashName:
    """Tests for hash_name."""

    def test_known_hash(self):
        assert hash_name("foo.eth").hex() == (
            "de9b09fd7c5f901e23a3f19fecc54828e9c848539801e86591bd9801b019f84f"
        )

    def test_case_insensitive(self):
        assert hash_name("Foo.ETH") == hash_name("foo.eth")
        assert hash_name("SUB.Vitalik.Eth") == hash_name("sub.vitalik.eth")

    def test_empty_labels_ignored(self):
        assert hash_name("foo..eth.") == hash_name("foo.eth")

    def test_top_level_uses_last_two_labels(self):
        top = hash_name("foo.eth")
        assert hash_name("a.b.foo.eth", top_level_only=True) == top
        assert hash_name("x.foo.eth", top_level_only=True) == top
        assert hash_name("x.bar.eth", top_level_only=True) != top

    def test_full_hash_depends_on_every_label(self):
        assert hash_name("a.foo.eth") != hash_name("b.foo.eth")

    @pytest.mark.parametrize("name", ["eth", ".eth", "", "..."])
    def test_fewer_than_two_labels_rejected(self, name):
        with pytest.raises(InvalidNameError):
            hash_name(name)

    def test_non_string_rejected(self):
        with pytest.raises(InvalidNameError):
            hash_name(123)


class TestResolve:
    """Tests for NameResolver.resolve."""

    @pytest.mark.asyncio
    async def test_address_passthrough_without_rpc(self, make_resolver):
        node = FakeNode()
        resolver = make_resolver(node)

        result = await resolver.resolve("0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed")

        assert result == "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
        assert node.calls == []

    @pytest.mark.asyncio
    async def test_resolves_and_caches(self, make_resolver, clock):
        """ethereum.eth with TTL 3600 caches for one hour and skips the chain afterwards."""
        node = FakeNode({"eth_chainId": "0x1", "eth_call": registry_call(ttl=3600)})
        resolver = make_resolver(node)

        assert await resolver.resolve("ethereum.eth") == TARGET

        entry = resolver.get_cache_entry(1, "ethereum.eth")
        assert entry.address == TARGET
        assert entry.expires_at == clock.now_ms + 3_600_000
        assert node.methods() == ["eth_chainId", "eth_call", "eth_call", "eth_call"]

        calls_before = len(node.calls)
        assert await resolver.resolve("Ethereum.ETH") == TARGET
        assert len(node.calls) == calls_before

    @pytest.mark.asyncio
    async def test_call_data_and_block(self, make_resolver):
        node = FakeNode({"eth_chainId": "0x1", "eth_call": registry_call()})
        resolver = make_resolver(node)

        await resolver.resolve("sub.ethereum.eth", block=5)

        resolver_call, addr_call, ttl_call = node.params_for("eth_call")
        top = hash_name("ethereum.eth").hex()
        full = hash_name("sub.ethereum.eth").hex()
        assert resolver_call[0]["data"] == "0x0178b8bf" + top
        assert addr_call[0]["data"] == "0x3b3b57de" + full
        assert ttl_call[0]["data"] == "0x16a25cbd" + top
        assert {params[1] for params in (resolver_call, addr_call, ttl_call)} == {"0x5"}

    @pytest.mark.asyncio
    async def test_cache_expires(self, make_resolver, clock):
        node = FakeNode({"eth_chainId": "0x1", "eth_call": registry_call(ttl=3600)})
        resolver = make_resolver(node)

        await resolver.resolve("ethereum.eth")
        clock.now_ms += 3_600_000

        await resolver.resolve("ethereum.eth")
        assert node.methods().count("eth_call") == 6

    @pytest.mark.asyncio
    async def test_short_ttl_raised_to_minimum(self, make_resolver, clock):
        node = FakeNode({"eth_chainId": "0x1", "eth_call": registry_call(ttl=10)})
        resolver = make_resolver(node)

        await resolver.resolve("ethereum.eth")

        entry = resolver.get_cache_entry(1, "ethereum.eth")
        assert entry.expires_at == clock.now_ms + 3_600_000

    @pytest.mark.asyncio
    async def test_long_ttl_lowered_to_maximum(self, make_resolver, clock):
        node = FakeNode({"eth_chainId": "0x1", "eth_call": registry_call(ttl=3600)})
        resolver = make_resolver(node, NameResolutionConfig(min_ttl_ms=1_000, max_ttl_ms=5_000))

        await resolver.resolve("ethereum.eth")

        entry = resolver.get_cache_entry(1, "ethereum.eth")
        assert entry.expires_at == clock.now_ms + 5_000

    @pytest.mark.asyncio
    async def test_zero_ttl_not_cached(self, make_resolver):
        node = FakeNode({"eth_chainId": "0x1", "eth_call": registry_call(ttl=0)})
        resolver = make_resolver(node)

        assert await resolver.resolve("ethereum.eth") == TARGET
        assert resolver.get_cache_entry(1, "ethereum.eth") is None

        await resolver.resolve("ethereum.eth")
        assert node.methods().count("eth_call") == 6

    @pytest.mark.asyncio
    async def test_cache_is_per_chain(self, config, clock):
        chain_ids = {"value": "0x1"}
        node = FakeNode({
            "eth_chainId": lambda params: chain_ids["value"],
            "eth_call": registry_call(),
        })
        first = NameResolver(RPCClient(node, config), clock=clock)
        await first.resolve("ethereum.eth")

        chain_ids["value"] = "0x5"
        second = NameResolver(RPCClient(node, config), clock=clock)
        await second.resolve("ethereum.eth")

        assert first.get_cache_entry(5, "ethereum.eth") is None
        assert second.get_cache_entry(5, "ethereum.eth").address == TARGET


class TestResolveFailures:
    """Tests for resolution errors."""

    @pytest.mark.asyncio
    async def test_unsupported_chain(self, make_resolver):
        node = FakeNode({"eth_chainId": hex(1337)})
        resolver = make_resolver(node)

        with pytest.raises(UnsupportedChainError) as exc_info:
            await resolver.resolve("ethereum.eth")

        assert exc_info.value.chain_id == 1337
        assert node.methods() == ["eth_chainId"]

    @pytest.mark.asyncio
    async def test_registry_override(self, make_resolver):
        node = FakeNode({"eth_chainId": hex(1337), "eth_call": registry_call()})
        resolver = make_resolver(node, registry_addresses={1337: REGISTRY_ADDRESS})

        assert await resolver.resolve("ethereum.eth") == TARGET

    @pytest.mark.asyncio
    async def test_no_resolver(self, make_resolver):
        node = FakeNode({"eth_chainId": "0x1", "eth_call": registry_call(resolver=NULL)})
        resolver = make_resolver(node)

        with pytest.raises(NoResolverError) as exc_info:
            await resolver.resolve("ethereum.eth")

        assert str(exc_info.value) == 'No resolver for name: "ethereum.eth"'
        assert resolver.get_cache_entry(1, "ethereum.eth") is None

    @pytest.mark.asyncio
    async def test_empty_return_means_no_resolver(self, make_resolver):
        node = FakeNode({"eth_chainId": "0x1", "eth_call": registry_call(resolver=None)})
        resolver = make_resolver(node)

        with pytest.raises(NoResolverError):
            await resolver.resolve("ethereum.eth")

    @pytest.mark.asyncio
    async def test_unresolvable_name(self, make_resolver):
        node = FakeNode({"eth_chainId": "0x1", "eth_call": registry_call(address=NULL)})
        resolver = make_resolver(node)

        with pytest.raises(ResolutionFailedError) as exc_info:
            await resolver.resolve("ethereum.eth")

        assert str(exc_info.value) == 'Failed to resolve name: "ethereum.eth"'
        assert node.methods().count("eth_call") == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("output", ["0xzz", "not hex"])
    async def test_malformed_call_output(self, make_resolver, output):
        node = FakeNode({"eth_chainId": "0x1", "eth_call": output})
        resolver = make_resolver(node)

        with pytest.raises(InvalidBytesError):
            await resolver.resolve("ethereum.eth")

    @pytest.mark.asyncio
    async def test_single_label_rejected_before_io(self, make_resolver):
        node = FakeNode({"eth_chainId": "0x1"})
        resolver = make_resolver(node)

        with pytest.raises(InvalidNameError):
            await resolver.resolve("localhost")
        assert node.calls == []
