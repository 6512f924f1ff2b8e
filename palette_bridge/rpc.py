"""
Chain RPC facade.

Thin synchronous wrapper over a web3 HTTP provider. Every transport failure is
raised as :class:`ChainUnavailable`; nothing here signs or holds keys.
"""
import logging
import threading
import urllib.parse
from typing import Any, Dict, Optional, Tuple, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from web3 import Web3
from web3.exceptions import (
    ContractLogicError,
    TransactionNotFound,
    Web3Exception,
)

from .codec import encode_header_rlp
from .exceptions import ChainUnavailable
from .models import ConfirmationRecord

logger = logging.getLogger(__name__)

BlockId = Union[int, str]

# Errors the provider raises for transport problems or JSON-RPC error replies
TRANSPORT_ERRORS = (requests.RequestException, Web3Exception, OSError, ValueError)


def _hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    value = str(value)
    return value if value.startswith("0x") else "0x" + value


def validate_rpc_url(url: str) -> None:
    """
    Require https unless the endpoint is a loopback address.

    Raises:
        ValueError: If the URL is not acceptable
    """
    parsed = urllib.parse.urlparse(url)
    host = parsed.hostname or ""
    is_local = host in ("localhost", "127.0.0.1", "::1")
    if parsed.scheme != "https" and not is_local:
        raise ValueError(f"rpc_url must use https:// for security (got: {parsed.scheme}://)")


class ChainRPC:
    """
    RPC facade for one chain.

    Safe for concurrent read-only queries. Broadcast ordering for a given
    account is the transaction engine's concern, not this class's.
    """

    def __init__(
        self,
        rpc_url: str,
        name: str = "chain",
        retry_count: int = 3,
        timeout: int = 30,
        w3: Optional[Web3] = None
    ):
        """
        Initialize the facade

        Args:
            rpc_url: JSON-RPC endpoint URL
            name: Label used in log lines ("palette", "relay", ...)
            retry_count: Number of HTTP retries for transport errors
            timeout: Timeout for HTTP requests in seconds
            w3: Pre-built Web3 instance (tests, custom providers)
        """
        validate_rpc_url(rpc_url)
        self.rpc_url = rpc_url
        self.name = name
        self._chain_id: Optional[int] = None
        self._chain_id_lock = threading.Lock()

        if w3 is None:
            session = requests.Session()
            retries = Retry(
                total=retry_count,
                backoff_factor=0.5,
                status_forcelist=[500, 502, 503, 504],
                allowed_methods=["POST"],
                raise_on_status=False,
                connect=retry_count,
                read=retry_count,
            )
            session.mount("http://", HTTPAdapter(max_retries=retries))
            session.mount("https://", HTTPAdapter(max_retries=retries))
            w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}, session=session))
        self.w3 = w3

    def _unavailable(self, action: str, error: Exception) -> ChainUnavailable:
        return ChainUnavailable(f"{self.name}: {action} failed: {error}")

    @property
    def chain_id(self) -> int:
        with self._chain_id_lock:
            if self._chain_id is None:
                try:
                    self._chain_id = int(self.w3.eth.chain_id)
                except TRANSPORT_ERRORS as e:
                    raise self._unavailable("eth_chainId", e) from e
            return self._chain_id

    def pending_nonce(self, address: str) -> int:
        """Nonce for ``address`` counting transactions still in the pool"""
        try:
            return int(self.w3.eth.get_transaction_count(address, "pending"))
        except TRANSPORT_ERRORS as e:
            raise self._unavailable(f"pending nonce for {address}", e) from e

    def suggest_gas_price(self) -> int:
        try:
            return int(self.w3.eth.gas_price)
        except TRANSPORT_ERRORS as e:
            raise self._unavailable("eth_gasPrice", e) from e

    def get_block(self, block_id: BlockId = "latest") -> Dict[str, Any]:
        """
        Block header fields exactly as the node returned them (hex strings),
        with ``number`` converted to int.

        Goes to the provider directly: web3's block formatting rejects the
        long ``extraData`` that carries relay chain validators.
        """
        param = hex(block_id) if isinstance(block_id, int) else block_id
        try:
            response = self.w3.provider.make_request("eth_getBlockByNumber", [param, False])
        except TRANSPORT_ERRORS as e:
            raise self._unavailable(f"block {block_id}", e) from e

        if response.get("error"):
            raise self._unavailable(f"block {block_id}", response["error"])
        block = response.get("result")
        if not block:
            raise ChainUnavailable(f"{self.name}: block {block_id} not found")

        block = dict(block)
        block["number"] = int(block["number"], 16)
        return block

    def get_header(self, block_id: BlockId = "latest") -> bytes:
        """RLP-encoded header of a block"""
        return encode_header_rlp(self.get_block(block_id))

    def current_header(self) -> Tuple[int, Dict[str, Any]]:
        """
        Latest block and its height.

        Returns:
            Tuple of (height, block)
        """
        block = self.get_block("latest")
        return block["number"], block

    def get_receipt(self, tx_hash: str) -> Optional[ConfirmationRecord]:
        """
        Receipt for ``tx_hash``, or None if the node has none yet.
        """
        try:
            receipt = self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        except TRANSPORT_ERRORS as e:
            raise self._unavailable(f"receipt {tx_hash}", e) from e
        if receipt is None:
            return None
        return self._convert_receipt(receipt)

    def broadcast(self, raw_transaction: bytes) -> str:
        """Send a signed transaction and return its hash without waiting"""
        try:
            tx_hash = self.w3.eth.send_raw_transaction(raw_transaction)
        except TRANSPORT_ERRORS as e:
            raise self._unavailable("eth_sendRawTransaction", e) from e
        return _hex(tx_hash)

    def is_pending(self, tx_hash: str) -> bool:
        """
        Whether ``tx_hash`` is still waiting in the pool.

        Raises:
            ChainUnavailable: On transport errors, or if the node does not know the hash
        """
        try:
            tx = self.w3.eth.get_transaction(tx_hash)
        except TRANSPORT_ERRORS as e:
            raise self._unavailable(f"transaction {tx_hash}", e) from e
        return tx.get("blockNumber") is None

    def replay_call(self, transaction: Dict[str, Any], block_number: int) -> Optional[str]:
        """
        Re-run a mined transaction as a call to recover its revert reason.

        Returns:
            The node's revert message, or None if the call succeeds or cannot be run
        """
        call = {k: transaction[k] for k in ("from", "to", "data", "value", "gas") if k in transaction}
        try:
            self.w3.eth.call(call, block_number)
        except ContractLogicError as e:
            return getattr(e, "message", None) or str(e)
        except TRANSPORT_ERRORS as e:
            logger.debug(f"{self.name}: could not replay call for revert reason: {e}")
        return None

    def _convert_receipt(self, receipt: Any) -> ConfirmationRecord:
        """
        Convert a web3 receipt to our ConfirmationRecord model
        """
        receipt_dict = dict(receipt)
        logs = []
        for entry in receipt_dict.get("logs", []):
            entry = dict(entry)
            logs.append({
                "address": entry["address"],
                "topics": [_hex(t) for t in entry.get("topics", [])],
                "data": entry.get("data", b""),
                "logIndex": entry.get("logIndex", 0),
            })
        return ConfirmationRecord.model_validate({
            "transactionHash": _hex(receipt_dict["transactionHash"]),
            "blockNumber": receipt_dict["blockNumber"],
            "status": receipt_dict.get("status", 0),
            "gasUsed": receipt_dict.get("gasUsed", 0),
            "logs": logs,
        })

    def __repr__(self) -> str:
        return f"ChainRPC({self.name}, {self.rpc_url})"
