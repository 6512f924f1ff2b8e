"""
In-memory stand-in for a chain RPC endpoint.

Signed transactions are decoded for real (legacy RLP form) and dispatched to
small per-contract handlers, so tests exercise the same bytes a node would see.
"""
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

import rlp
from eth_abi import decode as abi_decode, encode as abi_encode
from eth_account import Account
from eth_utils import keccak, to_checksum_address

from palette_bridge.abi import DEFAULT_REGISTRY
from palette_bridge.exceptions import ChainUnavailable
from palette_bridge.models import ConfirmationRecord

# (sender, call data) -> (revert reason or None, logs)
Handler = Callable[[str, bytes], Tuple[Optional[str], List[Dict[str, Any]]]]


class FakeChainRPC:
    """Implements the ChainRPC surface the engine and bootstrap rely on"""

    def __init__(self, name: str = "palette", chain_id: int = 101, gas_price: int = 10**9):
        self.name = name
        self.chain_id = chain_id
        self.gas_price = gas_price
        self.blocks: Dict[int, Dict[str, Any]] = {}
        self.handlers: Dict[str, Handler] = {}
        self.sent: List[Dict[str, Any]] = []
        self.receipts: Dict[str, ConfirmationRecord] = {}
        self.revert_reasons: Dict[Tuple[str, str], str] = {}

        # Failure injection
        self.pending_polls = 0
        self.poll_errors = 0
        self.nonce_error: Optional[Exception] = None
        self.broadcast_error: Optional[Exception] = None
        self.drop_receipts = False

        self.nonce_queries = 0
        self.poll_count: Dict[str, int] = {}
        self._lock = threading.Lock()
        self._block_number = 1000

    # -- contracts -------------------------------------------------------

    def register(self, address: str, handler: Handler) -> None:
        self.handlers[address.lower()] = handler

    # -- ChainRPC surface ------------------------------------------------

    def suggest_gas_price(self) -> int:
        return self.gas_price

    def pending_nonce(self, address: str) -> int:
        with self._lock:
            self.nonce_queries += 1
            if self.nonce_error is not None:
                raise self.nonce_error
            return sum(1 for tx in self.sent if tx["from"].lower() == address.lower())

    def broadcast(self, raw_transaction: bytes) -> str:
        if self.broadcast_error is not None:
            raise self.broadcast_error

        nonce, gas_price, gas, to, value, data, _v, _r, _s = rlp.decode(raw_transaction)
        sender = Account.recover_transaction(raw_transaction)
        tx_hash = "0x" + keccak(raw_transaction).hex()
        destination = to_checksum_address(to)
        tx = {
            "hash": tx_hash,
            "from": sender,
            "to": destination,
            "nonce": int.from_bytes(nonce, "big"),
            "gas": int.from_bytes(gas, "big"),
            "gasPrice": int.from_bytes(gas_price, "big"),
            "data": bytes(data),
        }

        handler = self.handlers.get(destination.lower())
        reason, logs = handler(sender, tx["data"]) if handler else (None, [])

        with self._lock:
            self.sent.append(tx)
            self._block_number += 1
            if reason is not None:
                self.revert_reasons[(destination.lower(), "0x" + tx["data"].hex())] = reason
            self.receipts[tx_hash] = ConfirmationRecord.model_validate({
                "transactionHash": tx_hash,
                "blockNumber": self._block_number,
                "status": 0 if reason is not None else 1,
                "gasUsed": 21000,
                "logs": [] if reason is not None else logs,
            })
        return tx_hash

    def is_pending(self, tx_hash: str) -> bool:
        with self._lock:
            if self.poll_errors > 0:
                self.poll_errors -= 1
                raise ChainUnavailable(f"{self.name}: transaction {tx_hash} failed: connection reset")
            count = self.poll_count.get(tx_hash, 0) + 1
            self.poll_count[tx_hash] = count
            return count <= self.pending_polls

    def get_receipt(self, tx_hash: str) -> Optional[ConfirmationRecord]:
        if self.drop_receipts:
            return None
        return self.receipts.get(tx_hash)

    def replay_call(self, transaction: Dict[str, Any], block_number: int) -> Optional[str]:
        return self.revert_reasons.get((transaction["to"].lower(), transaction["data"]))

    def get_block(self, block_id="latest") -> Dict[str, Any]:
        if block_id == "latest":
            block_id = max(self.blocks)
        try:
            return self.blocks[block_id]
        except KeyError:
            raise ChainUnavailable(f"{self.name}: block {block_id} failed: not found")

    def current_header(self) -> Tuple[int, Dict[str, Any]]:
        block = self.get_block("latest")
        return block["number"], block

    # -- helpers ---------------------------------------------------------

    def sent_from(self, address: str) -> List[Dict[str, Any]]:
        return [tx for tx in self.sent if tx["from"].lower() == address.lower()]


def make_block(number: int, extra_data: bytes = b"", base_fee: Optional[int] = None) -> Dict[str, Any]:
    """Block dict shaped like web3's ``get_block`` output"""
    seed = number.to_bytes(4, "big")
    block = {
        "parentHash": keccak(b"parent" + seed),
        "sha3Uncles": keccak(b"uncles"),
        "miner": "0x" + "ab" * 20,
        "stateRoot": keccak(b"state" + seed),
        "transactionsRoot": keccak(b"txs" + seed),
        "receiptsRoot": keccak(b"receipts" + seed),
        "logsBloom": b"\x00" * 256,
        "difficulty": 2,
        "number": number,
        "gasLimit": 8000000,
        "gasUsed": 0,
        "timestamp": 1600000000 + number,
        "extraData": extra_data,
        "mixHash": b"\x00" * 32,
        "nonce": b"\x00" * 8,
    }
    if base_fee is not None:
        block["baseFeePerGas"] = base_fee
    return block


def validator_extra(public_keys: List[bytes], vanity: bytes = b"\x00" * 32) -> bytes:
    """Relay header extra data: vanity followed by an RLP list led by the validator keys"""
    return vanity + rlp.encode([list(public_keys), b""])


def lock_log(
    emitter: str,
    from_asset: str,
    from_address: str,
    to_chain_id: int,
    to_asset: bytes,
    to_address: bytes,
    amount: int
) -> Dict[str, Any]:
    spec = DEFAULT_REGISTRY.event("lock")
    return {
        "address": emitter,
        "topics": [spec.topic],
        "data": abi_encode(
            list(spec.input_types),
            [from_asset, from_address, to_chain_id, to_asset, to_address, amount],
        ),
    }


def unlock_log(emitter: str, to_asset: str, to_address: str, amount: int) -> Dict[str, Any]:
    spec = DEFAULT_REGISTRY.event("unlock")
    return {
        "address": emitter,
        "topics": [spec.topic],
        "data": abi_encode(list(spec.input_types), [to_asset, to_address, amount]),
    }


def filler_log(emitter: str, topic: str = "0x" + "11" * 32) -> Dict[str, Any]:
    return {"address": emitter, "topics": [topic], "data": b""}


def decode_call(name: str, data: bytes) -> Tuple[Any, ...]:
    """Decode call data for a registered function, checking the selector"""
    spec = DEFAULT_REGISTRY.functions[name]
    assert data[:4] == spec.selector, f"call data is not {name}"
    return abi_decode(list(spec.input_types), data[4:])


class FakeSideChainManager:
    """
    Relay chain side chain manager: one registration per id, activation at quorum.
    """

    def __init__(self, quorum: int = 1):
        self.quorum = quorum
        self.registrations: Dict[int, Dict[str, Any]] = {}
        self.approvals: Dict[int, set] = {}
        self.active: set = set()

    def __call__(self, sender: str, data: bytes):
        register = DEFAULT_REGISTRY.functions["registerSideChain"].selector
        approve = DEFAULT_REGISTRY.functions["approveRegisterSideChain"].selector
        if data[:4] == register:
            chain_id, data_contract, router, name = decode_call("registerSideChain", data)
            if chain_id in self.registrations:
                return "side chain already registered", []
            self.registrations[chain_id] = {
                "data_contract": data_contract, "router": router, "name": name,
            }
            return None, []
        if data[:4] == approve:
            (chain_id,) = decode_call("approveRegisterSideChain", data)
            if chain_id not in self.registrations:
                return "side chain not registered", []
            approvers = self.approvals.setdefault(chain_id, set())
            if sender.lower() in approvers:
                return "already approved", []
            approvers.add(sender.lower())
            if len(approvers) >= self.quorum:
                self.active.add(chain_id)
            return None, []
        return "unknown method", []


class FakeHeaderSync:
    def __init__(self):
        self.synced: Dict[int, bytes] = {}

    def __call__(self, sender: str, data: bytes):
        chain_id, header = decode_call("syncGenesisBlock", data)
        if chain_id in self.synced:
            return "genesis header already synced", []
        self.synced[chain_id] = header
        return None, []


class FakeCrossChainManager:
    def __init__(self):
        self.genesis: Optional[Tuple[bytes, bytes]] = None

    def __call__(self, sender: str, data: bytes):
        raw_header, key_list = decode_call("initGenesisBlock", data)
        if self.genesis is not None:
            return "already initialized", []
        self.genesis = (raw_header, key_list)
        return None, []
