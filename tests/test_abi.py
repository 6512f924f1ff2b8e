"""
Tests for the contract registry.
"""
import pytest
from eth_abi import decode as abi_decode
from eth_utils import keccak

from palette_bridge.abi import DEFAULT_REGISTRY, ContractRegistry, WRAPPER_ABI
from palette_bridge.models import EventKind


def _selector(signature):
    return keccak(text=signature)[:4]


class TestContractRegistry:

    @pytest.mark.parametrize("name, signature", [
        ("registerSideChain", "registerSideChain(uint64,address,uint64,string)"),
        ("approveRegisterSideChain", "approveRegisterSideChain(uint64)"),
        ("syncGenesisBlock", "syncGenesisBlock(uint64,bytes)"),
        ("initGenesisBlock", "initGenesisBlock(bytes,bytes)"),
        ("lock", "lock(address,uint64,bytes,uint256,uint256,uint256)"),
    ])
    def test_function_selectors(self, name, signature):
        assert DEFAULT_REGISTRY.functions[name].selector == _selector(signature)

    def test_event_topics(self):
        lock = DEFAULT_REGISTRY.event(EventKind.LOCK)
        unlock = DEFAULT_REGISTRY.event("unlock")

        assert lock.topic == "0x" + keccak(text="lock(address,address,uint64,bytes,bytes,uint256)").hex()
        assert unlock.topic == "0x" + keccak(text="unlock(address,address,uint256)").hex()

    def test_encode_call(self):
        data = DEFAULT_REGISTRY.encode_call("syncGenesisBlock", 201, b"{}")

        assert data[:4] == _selector("syncGenesisBlock(uint64,bytes)")
        assert abi_decode(["uint64", "bytes"], data[4:]) == (201, b"{}")

    def test_unknown_function(self):
        with pytest.raises(KeyError, match="Unknown contract function"):
            DEFAULT_REGISTRY.encode_call("quitSideChain", 1)

    def test_event_name_lookup(self):
        topic = DEFAULT_REGISTRY.event("lock").topic
        assert DEFAULT_REGISTRY.event_name(topic.upper().replace("0X", "0x")) == "lock"
        assert DEFAULT_REGISTRY.event_name("0x" + "00" * 32) is None

    def test_registry_is_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_REGISTRY.functions["lock"] = None
        with pytest.raises(AttributeError):
            DEFAULT_REGISTRY.functions = {}

    def test_build_subset(self):
        registry = ContractRegistry.build([WRAPPER_ABI])
        assert list(registry.functions) == ["lock"]
        assert dict(registry.events) == {}
