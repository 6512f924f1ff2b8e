"""
Pytest fixtures for the palette-bridge tests.
"""
import pytest
from eth_keys import keys
from web3.providers.rpc import HTTPProvider

from palette_bridge import _rate_limited_log
from palette_bridge.config import BridgeConfig
from palette_bridge.engine import ConfirmationWaiter, TransactionEngine
from palette_bridge.signer import LocalSigner

from test_helpers.fake_chain import (
    FakeChainRPC,
    FakeCrossChainManager,
    FakeHeaderSync,
    FakeSideChainManager,
    make_block,
    validator_extra,
)

# Constants for testing
TEST_PALETTE_RPC_URL = "https://palette.example.com"
TEST_RELAY_RPC_URL = "https://relay.example.com"
PALETTE_KEY = "0x0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
RELAY_KEY = "0x1111111111111111111111111111111111111111111111111111111111111111"
VALIDATOR_KEYS = [
    "0x2222222222222222222222222222222222222222222222222222222222222222",
    "0x3333333333333333333333333333333333333333333333333333333333333333",
    "0x4444444444444444444444444444444444444444444444444444444444444444",
]

SIDE_CHAIN_ID = 201
DATA_CONTRACT = "0xABCD000000000000000000000000000000000001"
SIDE_CHAIN_MANAGER = "0x1000000000000000000000000000000000000001"
HEADER_SYNC = "0x1000000000000000000000000000000000000002"
CROSS_CHAIN_MANAGER = "0x2000000000000000000000000000000000000001"
LOCK_PROXY = "0x2000000000000000000000000000000000000002"
WRAPPER = "0x2000000000000000000000000000000000000003"
ASSET = "0x3000000000000000000000000000000000000001"


@pytest.fixture(autouse=True)
def _no_network(monkeypatch):
    """Fail loudly if anything reaches for a real HTTP endpoint."""
    def _refuse(self, method, params=None):
        raise AssertionError(f"unexpected RPC call {method}")

    monkeypatch.setattr(HTTPProvider, "make_request", _refuse, raising=True)


@pytest.fixture(autouse=True)
def _clean_state():
    _rate_limited_log.reset()
    BridgeConfig.clear_cache()
    yield
    _rate_limited_log.reset()
    BridgeConfig.clear_cache()


@pytest.fixture
def palette_signer():
    return LocalSigner(PALETTE_KEY)


@pytest.fixture
def relay_signer():
    return LocalSigner(RELAY_KEY)


@pytest.fixture
def validator_signers():
    return [LocalSigner(k) for k in VALIDATOR_KEYS]


@pytest.fixture
def validator_public_keys():
    """Compressed public keys of the relay validators, in validator order"""
    return [
        keys.PrivateKey(bytes.fromhex(k[2:])).public_key.to_compressed_bytes()
        for k in VALIDATOR_KEYS
    ]


@pytest.fixture
def palette_chain():
    chain = FakeChainRPC(name="palette", chain_id=101)
    chain.blocks[500] = make_block(500)
    chain.blocks[501] = make_block(501)
    return chain


@pytest.fixture
def relay_chain(validator_public_keys):
    chain = FakeChainRPC(name="relay", chain_id=9)
    chain.blocks[0] = make_block(0, extra_data=validator_extra(validator_public_keys))
    chain.blocks[1] = make_block(1)
    return chain


@pytest.fixture
def side_chain_manager(relay_chain):
    manager = FakeSideChainManager(quorum=1)
    relay_chain.register(SIDE_CHAIN_MANAGER, manager)
    return manager


@pytest.fixture
def header_sync(relay_chain):
    sync = FakeHeaderSync()
    relay_chain.register(HEADER_SYNC, sync)
    return sync


@pytest.fixture
def cross_chain_manager(palette_chain):
    manager = FakeCrossChainManager()
    palette_chain.register(CROSS_CHAIN_MANAGER, manager)
    return manager


def make_engine(chain, signer, **kwargs):
    """Engine over a fake chain that polls without sleeping"""
    waiter = ConfirmationWaiter(
        chain,
        poll_interval=0,
        max_wait=kwargs.pop("max_wait", None),
        sleep=kwargs.pop("sleep", lambda seconds, token: None),
        clock=kwargs.pop("clock", None) or (lambda: 0.0),
    )
    return TransactionEngine(chain, signer, waiter=waiter, **kwargs)


@pytest.fixture
def palette_engine(palette_chain, palette_signer):
    return make_engine(palette_chain, palette_signer)


@pytest.fixture
def relay_engine(relay_chain, relay_signer):
    return make_engine(relay_chain, relay_signer)
