"""
Transaction submission and confirmation.

TransactionEngine composes a signer (keys only) with a ChainRPC facade
(transport only): it prices, numbers, signs and broadcasts a call, waits until
the node stops reporting it as pending, then checks the receipt.
"""
import logging
import threading
import time
from decimal import Decimal
from typing import Callable, Optional, Union

from eth_utils import to_checksum_address

from ._rate_limited_log import rate_limited_log
from .abi import ContractRegistry, DEFAULT_REGISTRY
from .exceptions import (
    ChainUnavailable,
    ConfirmationCancelled,
    ConfirmationTimeout,
    SigningError,
    TransactionReverted,
)
from .models import ConfirmationRecord, PendingCall
from .nonce import NonceAllocator
from .rpc import ChainRPC
from .signer import Signer

DEFAULT_GAS_LIMIT = 100000
DEFAULT_POLL_INTERVAL = 1.0

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cross-thread flag used to abandon a confirmation wait"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, returning early (True) on cancellation"""
        return self._event.wait(timeout)


def _token_sleep(seconds: float, token: CancellationToken) -> None:
    token.wait(seconds)


class ConfirmationWaiter:
    """
    Polls a transaction hash until the node no longer reports it as pending.

    RPC errors while polling are logged and the poll is retried. With
    ``max_wait=None`` the wait only ends on confirmation or cancellation.
    """

    def __init__(
        self,
        rpc: ChainRPC,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_wait: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float, CancellationToken], None] = _token_sleep,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            rpc: Facade of the chain the transaction was sent to
            poll_interval: Seconds between polls
            max_wait: Give up after this many seconds (None waits forever)
            clock: Monotonic clock, injectable for tests
            sleep: ``sleep(seconds, token)``; must return early when the token is cancelled
            logger: Optional logger instance
        """
        self.rpc = rpc
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self.clock = clock
        self.sleep = sleep
        self.logger = logger or logging.getLogger(__name__)

    def wait(self, tx_hash: str, cancel: Optional[CancellationToken] = None) -> int:
        """
        Block until ``tx_hash`` leaves the pending pool.

        Returns:
            Number of polls it took

        Raises:
            ConfirmationCancelled: If ``cancel`` is triggered
            ConfirmationTimeout: If ``max_wait`` elapses first
        """
        token = cancel or CancellationToken()
        started = self.clock()
        polls = 0

        while True:
            if token.cancelled:
                raise ConfirmationCancelled(tx_hash)
            self.sleep(self.poll_interval, token)
            if token.cancelled:
                raise ConfirmationCancelled(tx_hash)

            polls += 1
            try:
                pending = self.rpc.is_pending(tx_hash)
            except ChainUnavailable as e:
                rate_limited_log(
                    f"Failed to query transaction {tx_hash}: {e}",
                    level="error",
                    key=f"poll:{tx_hash}:{e}",
                    logger_instance=self.logger,
                )
                pending = True

            if not pending:
                self.logger.debug(f"Transaction {tx_hash} left the pool after {polls} polls")
                return polls

            elapsed = self.clock() - started
            if self.max_wait is not None and elapsed >= self.max_wait:
                raise ConfirmationTimeout(tx_hash, elapsed)


class TransactionEngine:
    """
    Submits contract calls from one signer to one chain and waits for them.

    Nonce allocation, signing and broadcast run under a single lock per
    engine, so nonce order always matches broadcast order.
    """

    def __init__(
        self,
        rpc: ChainRPC,
        signer: Signer,
        gas_limit: int = DEFAULT_GAS_LIMIT,
        gas_price_multiplier: Union[int, float, Decimal] = 1,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_wait: Optional[float] = None,
        registry: ContractRegistry = DEFAULT_REGISTRY,
        allocator: Optional[NonceAllocator] = None,
        waiter: Optional[ConfirmationWaiter] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the engine

        Args:
            rpc: Chain facade used for pricing, broadcast and receipts
            signer: Signer for the sending account
            gas_limit: Gas limit put on every transaction
            gas_price_multiplier: Factor applied to the node's suggested gas price
            poll_interval: Seconds between confirmation polls
            max_wait: Maximum confirmation wait in seconds (None waits forever)
            registry: Contract registry used to name logged events
            allocator: Nonce allocator for the signer (created if omitted)
            waiter: Confirmation waiter (created if omitted)
            logger: Optional logger instance to use for debug/info logging

        Raises:
            ValueError: If signer is missing or the multiplier is not positive
        """
        if signer is None:
            raise ValueError("signer must be provided")
        if Decimal(str(gas_price_multiplier)) <= 0:
            raise ValueError("gas_price_multiplier must be positive")

        self.rpc = rpc
        self.signer = signer
        self.gas_limit = gas_limit
        self.gas_price_multiplier = gas_price_multiplier
        self.registry = registry
        self.logger = logger or logging.getLogger(__name__)
        self.allocator = allocator or NonceAllocator(rpc, signer.address)
        self.waiter = waiter or ConfirmationWaiter(
            rpc, poll_interval=poll_interval, max_wait=max_wait, logger=self.logger
        )
        self._send_lock = threading.Lock()

    @property
    def address(self) -> str:
        return self.signer.address

    def gas_price(self) -> int:
        """Suggested gas price scaled by the configured multiplier"""
        suggested = self.rpc.suggest_gas_price()
        if isinstance(self.gas_price_multiplier, int):
            return suggested * self.gas_price_multiplier
        return int(Decimal(suggested) * Decimal(str(self.gas_price_multiplier)))

    def send(self, destination: str, payload: bytes) -> str:
        """
        Price, number, sign and broadcast a call without waiting for it.

        Returns:
            Transaction hash

        Raises:
            ChainUnavailable: If pricing, seeding or broadcast fails
            SigningError: If the signer refuses the transaction
            ValueError: If destination is not an address
        """
        to = to_checksum_address(destination)
        gas_price = self.gas_price()
        chain_id = self.rpc.chain_id

        with self._send_lock:
            nonce = self.allocator.allocate()
            call = PendingCall(
                to=to,
                data=bytes(payload),
                gas=self.gas_limit,
                gas_price=gas_price,
                nonce=nonce,
                chain_id=chain_id,
            )
            try:
                raw = self._sign(call)
                tx_hash = self.rpc.broadcast(raw)
            except (SigningError, ChainUnavailable):
                # The nonce never reached the pool; re-read it from the chain next time
                self.allocator.reset()
                raise

        self.logger.info(f"Transaction sent: {tx_hash} (nonce {nonce}, to {destination})")
        return tx_hash

    def submit(
        self,
        destination: str,
        payload: bytes,
        cancel: Optional[CancellationToken] = None
    ) -> ConfirmationRecord:
        """
        Send a call and wait until it is mined with a success status.

        Args:
            destination: Contract address
            payload: ABI-encoded call data
            cancel: Token that abandons the confirmation wait when cancelled

        Returns:
            Confirmation record of the mined transaction

        Raises:
            ChainUnavailable: On transport failures outside the polling loop
            SigningError: If the signer refuses the transaction
            ConfirmationCancelled: If the wait was cancelled
            ConfirmationTimeout: If the configured maximum wait elapsed
            TransactionReverted: If the transaction was mined with a failure status
        """
        tx_hash = self.send(destination, payload)
        self.waiter.wait(tx_hash, cancel)
        record = self.confirm(tx_hash, destination=destination, payload=payload)
        self.logger.info(f"Transaction {tx_hash} confirmed in block {record.block_number}")
        return record

    def confirm(
        self,
        tx_hash: str,
        destination: Optional[str] = None,
        payload: Optional[bytes] = None
    ) -> ConfirmationRecord:
        """
        Fetch and validate the receipt of a mined transaction, logging its events.

        Raises:
            ChainUnavailable: If the receipt cannot be fetched
            TransactionReverted: If the receipt reports failure
        """
        record = self.rpc.get_receipt(tx_hash)
        if record is None:
            raise ChainUnavailable(f"{self.rpc.name}: no receipt for mined transaction {tx_hash}")

        if not record.succeeded:
            reason = None
            if destination is not None and payload is not None:
                reason = self.rpc.replay_call(
                    {"from": self.address, "to": destination, "data": "0x" + bytes(payload).hex(),
                     "value": 0, "gas": self.gas_limit},
                    record.block_number,
                )
            self.logger.error(f"Transaction {tx_hash} reverted in block {record.block_number}: {reason}")
            raise TransactionReverted(tx_hash, record=record, reason=reason)

        self.dump_events(record)
        return record

    def dump_transaction(self, tx_hash: str) -> ConfirmationRecord:
        """Re-check an already mined transaction and log its events"""
        return self.confirm(tx_hash)

    def dump_events(self, record: ConfirmationRecord) -> None:
        self.logger.info(f"txhash {record.tx_hash}, block height {record.block_number}")
        for event in record.logs:
            name = self.registry.event_name(event.topics[0]) if event.topics else None
            self.logger.info(f"eventlog address {event.address}" + (f" ({name})" if name else ""))
            self.logger.info(f"eventlog data {int.from_bytes(event.data, 'big')}")
            for i, topic in enumerate(event.topics):
                self.logger.info(f"eventlog topic[{i}] {topic}")

    def _sign(self, call: PendingCall) -> bytes:
        try:
            signed = self.signer.sign_transaction(call.to_transaction())
        except Exception as e:
            self.logger.error(f"Transaction signing failed: {e}")
            raise SigningError(f"Failed to sign transaction: {str(e)}") from e
        return bytes(signed.raw_transaction)
