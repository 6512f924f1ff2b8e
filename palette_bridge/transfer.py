"""
Lock submission through the Palette asset wrapper.
"""
import logging
from typing import Optional, Tuple, Union

from .abi import ContractRegistry, DEFAULT_REGISTRY
from .engine import CancellationToken, TransactionEngine
from .events import EventDecoder
from .models import ConfirmationRecord, EventKind, TransferEvent

logger = logging.getLogger(__name__)


def _address_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


class LockSubmitter:
    """Locks assets for a cross-chain transfer and checks the proxy's lock event"""

    def __init__(
        self,
        engine: TransactionEngine,
        lock_proxy: str,
        decoder: Optional[EventDecoder] = None,
        registry: ContractRegistry = DEFAULT_REGISTRY,
        logger: Optional[logging.Logger] = None
    ):
        self.engine = engine
        self.lock_proxy = lock_proxy
        self.registry = registry
        self.decoder = decoder or EventDecoder(registry=registry)
        self.logger = logger or logging.getLogger(__name__)

    def lock(
        self,
        wrapper: str,
        from_asset: str,
        to_chain_id: int,
        to_address: Union[str, bytes],
        amount: int,
        fee: int = 0,
        lock_id: int = 0,
        cancel: Optional[CancellationToken] = None
    ) -> Tuple[ConfirmationRecord, TransferEvent]:
        """
        Submit ``wrapper.lock`` and decode the resulting lock event.

        Args:
            wrapper: Wrapper contract address
            from_asset: Asset being locked on Palette
            to_chain_id: Destination chain id
            to_address: Recipient on the destination chain (raw bytes or hex)
            amount: Amount to lock
            fee: Relayer fee
            lock_id: Wrapper-side request id
            cancel: Token that abandons the confirmation wait

        Returns:
            Tuple of (confirmation record, decoded lock event)

        Raises:
            ValueError: If amount or fee is negative
            TransactionReverted: If the lock was mined with a failure status
            EventNotFound: If the lock proxy emitted no lock event
        """
        if amount < 0 or fee < 0:
            raise ValueError("amount and fee must not be negative")

        payload = self.registry.encode_call(
            "lock", from_asset, to_chain_id, _address_bytes(to_address), amount, fee, lock_id
        )
        self.logger.info(f"Locking {amount} of {from_asset} for chain {to_chain_id} via {wrapper}")
        record = self.engine.submit(wrapper, payload, cancel=cancel)
        event = self.decoder.decode(record, self.lock_proxy, EventKind.LOCK)
        return record, event
