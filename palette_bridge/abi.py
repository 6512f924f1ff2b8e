"""
Contract ABIs and event signatures used by the bootstrap.

The registry is built once and handed to the components that need it; it is
never mutated afterwards.
"""
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence

from eth_abi import decode as abi_decode, encode as abi_encode
from eth_utils import event_abi_to_log_topic, function_abi_to_4byte_selector

from .models import EventKind

# Relay chain side chain manager
SIDE_CHAIN_MANAGER_ABI = [
    {
        "inputs": [
            {"internalType": "uint64", "name": "chainId", "type": "uint64"},
            {"internalType": "address", "name": "crossChainData", "type": "address"},
            {"internalType": "uint64", "name": "router", "type": "uint64"},
            {"internalType": "string", "name": "name", "type": "string"}
        ],
        "name": "registerSideChain",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [
            {"internalType": "uint64", "name": "chainId", "type": "uint64"}
        ],
        "name": "approveRegisterSideChain",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    }
]

# Relay chain header sync
HEADER_SYNC_ABI = [
    {
        "inputs": [
            {"internalType": "uint64", "name": "chainId", "type": "uint64"},
            {"internalType": "bytes", "name": "genesisHeader", "type": "bytes"}
        ],
        "name": "syncGenesisBlock",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    }
]

# Side chain cross chain manager
CROSS_CHAIN_MANAGER_ABI = [
    {
        "inputs": [
            {"internalType": "bytes", "name": "rawHeader", "type": "bytes"},
            {"internalType": "bytes", "name": "pubKeyList", "type": "bytes"}
        ],
        "name": "initGenesisBlock",
        "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function"
    }
]

# Side chain asset wrapper in front of the lock proxy
WRAPPER_ABI = [
    {
        "inputs": [
            {"internalType": "address", "name": "fromAsset", "type": "address"},
            {"internalType": "uint64", "name": "toChainId", "type": "uint64"},
            {"internalType": "bytes", "name": "toAddress", "type": "bytes"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
            {"internalType": "uint256", "name": "fee", "type": "uint256"},
            {"internalType": "uint256", "name": "id", "type": "uint256"}
        ],
        "name": "lock",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function"
    }
]

LOCK_PROXY_EVENTS_ABI = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "internalType": "address", "name": "fromAssetHash", "type": "address"},
            {"indexed": False, "internalType": "address", "name": "fromAddress", "type": "address"},
            {"indexed": False, "internalType": "uint64", "name": "toChainId", "type": "uint64"},
            {"indexed": False, "internalType": "bytes", "name": "toAssetHash", "type": "bytes"},
            {"indexed": False, "internalType": "bytes", "name": "toAddress", "type": "bytes"},
            {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"}
        ],
        "name": "lock",
        "type": "event"
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "internalType": "address", "name": "toAssetHash", "type": "address"},
            {"indexed": False, "internalType": "address", "name": "toAddress", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"}
        ],
        "name": "unlock",
        "type": "event"
    }
]


@dataclass(frozen=True)
class FunctionSpec:
    name: str
    selector: bytes
    input_types: tuple

    def encode(self, *args: Any) -> bytes:
        return self.selector + abi_encode(list(self.input_types), list(args))


@dataclass(frozen=True)
class EventSpec:
    name: str
    topic: str
    input_names: tuple
    input_types: tuple

    def decode(self, data: bytes) -> Dict[str, Any]:
        values = abi_decode(list(self.input_types), data)
        return dict(zip(self.input_names, values))


def _functions(abi: List[Dict[str, Any]]) -> Dict[str, FunctionSpec]:
    specs = {}
    for entry in abi:
        if entry.get("type") != "function":
            continue
        specs[entry["name"]] = FunctionSpec(
            name=entry["name"],
            selector=bytes(function_abi_to_4byte_selector(entry)),
            input_types=tuple(i["type"] for i in entry["inputs"]),
        )
    return specs


def _events(abi: List[Dict[str, Any]]) -> Dict[str, EventSpec]:
    specs = {}
    for entry in abi:
        if entry.get("type") != "event":
            continue
        specs[entry["name"]] = EventSpec(
            name=entry["name"],
            topic="0x" + bytes(event_abi_to_log_topic(entry)).hex(),
            input_names=tuple(i["name"] for i in entry["inputs"]),
            input_types=tuple(i["type"] for i in entry["inputs"]),
        )
    return specs


@dataclass(frozen=True)
class ContractRegistry:
    """Read-only view of every function and event the bootstrap touches"""
    functions: Mapping[str, FunctionSpec]
    events: Mapping[str, EventSpec]

    @classmethod
    def build(cls, abis: Optional[Sequence[List[Dict[str, Any]]]] = None) -> "ContractRegistry":
        abis = abis if abis is not None else (
            SIDE_CHAIN_MANAGER_ABI,
            HEADER_SYNC_ABI,
            CROSS_CHAIN_MANAGER_ABI,
            WRAPPER_ABI,
            LOCK_PROXY_EVENTS_ABI,
        )
        functions: Dict[str, FunctionSpec] = {}
        events: Dict[str, EventSpec] = {}
        for abi in abis:
            functions.update(_functions(abi))
            events.update(_events(abi))
        return cls(functions=MappingProxyType(functions), events=MappingProxyType(events))

    def encode_call(self, name: str, *args: Any) -> bytes:
        """
        ABI-encode a call to ``name``.

        Raises:
            KeyError: If the function is not registered
        """
        try:
            spec = self.functions[name]
        except KeyError:
            raise KeyError(f"Unknown contract function: {name}")
        return spec.encode(*args)

    def event(self, kind: EventKind) -> EventSpec:
        return self.events[EventKind(kind).value]

    def event_name(self, topic: str) -> Optional[str]:
        """Name of the registered event whose signature hash is ``topic``, if any."""
        topic = topic.lower()
        for spec in self.events.values():
            if spec.topic == topic:
                return spec.name
        return None


DEFAULT_REGISTRY = ContractRegistry.build()
