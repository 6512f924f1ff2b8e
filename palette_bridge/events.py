"""
Lock / unlock event decoding.

Used after a transfer transaction to check that the lock proxy really emitted
the cross-chain intent the caller asked for.
"""
import logging
from enum import Enum
from typing import Optional, Union

from eth_abi.exceptions import DecodingError
from eth_utils import to_checksum_address

from .abi import ContractRegistry, DEFAULT_REGISTRY
from .exceptions import (
    ChainUnavailable,
    EventNotFound,
    InsufficientLogs,
    TransactionReverted,
    UnexpectedEmitter,
)
from .models import ConfirmationRecord, EventKind, EventLog, TransferEvent
from .rpc import ChainRPC

logger = logging.getLogger(__name__)

# A lock through the wrapper emits the token transfer, the cross chain
# manager event and the proxy event
DEFAULT_MIN_LOGS = 3


class LogCheckSeverity(str, Enum):
    """What to do when a receipt carries fewer logs than expected"""
    IGNORE = "ignore"
    WARN = "warn"
    ERROR = "error"


def _address_hex(value: Union[str, bytes]) -> str:
    if isinstance(value, bytes):
        return "0x" + value.hex()
    return value


class EventDecoder:
    """Finds and decodes lock/unlock events in confirmation records"""

    def __init__(
        self,
        registry: ContractRegistry = DEFAULT_REGISTRY,
        min_logs: int = DEFAULT_MIN_LOGS,
        log_check: Union[LogCheckSeverity, str] = LogCheckSeverity.WARN,
        logger: Optional[logging.Logger] = None
    ):
        self.registry = registry
        self.min_logs = min_logs
        self.log_check = LogCheckSeverity(log_check)
        self.logger = logger or logging.getLogger(__name__)

    def check_log_count(self, record: ConfirmationRecord) -> bool:
        """
        Minimum log count check.

        Returns:
            True if the receipt has enough logs

        Raises:
            InsufficientLogs: If it does not and the severity is ``error``
        """
        count = len(record.logs)
        if count >= self.min_logs:
            return True
        if self.log_check is LogCheckSeverity.ERROR:
            raise InsufficientLogs(record.tx_hash, self.min_logs, count)
        if self.log_check is LogCheckSeverity.WARN:
            self.logger.warning(
                f"Invalid receipt {record.tx_hash}, logs length expect {self.min_logs}, got {count}"
            )
        return False

    def find_log(
        self,
        record: ConfirmationRecord,
        expected_emitter: str,
        kind: Union[EventKind, str]
    ) -> EventLog:
        """
        Pick the log carrying ``kind`` from ``expected_emitter``.

        When several match, the last one wins.

        Raises:
            EventNotFound: If no log has the event signature
            UnexpectedEmitter: If only other contracts emitted it
        """
        kind = EventKind(kind)
        topic = self.registry.event(kind).topic
        expected = expected_emitter.lower()

        candidates = [log for log in record.logs if log.topics and log.topics[0] == topic]
        if not candidates:
            raise EventNotFound(f"Can not find proxy {kind.value} event in {record.tx_hash}")

        from_expected = [log for log in candidates if log.address.lower() == expected]
        if not from_expected:
            raise UnexpectedEmitter(to_checksum_address(expected_emitter), candidates[-1].address)
        return from_expected[-1]

    def decode(
        self,
        record: ConfirmationRecord,
        expected_emitter: str,
        kind: Union[EventKind, str]
    ) -> TransferEvent:
        """
        Decode the lock or unlock event of a confirmed transaction.

        Args:
            record: Confirmation record of the transfer transaction
            expected_emitter: Lock proxy address that must have emitted the event
            kind: ``lock`` or ``unlock``

        Returns:
            The decoded transfer

        Raises:
            TransactionReverted: If the record has a failure status
            InsufficientLogs: If the log count check is set to ``error`` and fails
            EventNotFound: If the event is missing
            UnexpectedEmitter: If the event came from another contract
        """
        if not record.succeeded:
            raise TransactionReverted(record.tx_hash, record=record)

        kind = EventKind(kind)
        self.check_log_count(record)
        log = self.find_log(record, expected_emitter, kind)

        try:
            values = self.registry.event(kind).decode(log.data)
        except DecodingError as e:
            raise EventNotFound(f"Malformed {kind.value} event data in {record.tx_hash}: {e}") from e

        if kind is EventKind.LOCK:
            return TransferEvent(
                kind=kind,
                from_asset=to_checksum_address(values["fromAssetHash"]),
                from_address=to_checksum_address(values["fromAddress"]),
                to_chain_id=values["toChainId"],
                to_asset=_address_hex(values["toAssetHash"]),
                to_address=_address_hex(values["toAddress"]),
                amount=values["amount"],
            )
        return TransferEvent(
            kind=kind,
            to_asset=to_checksum_address(values["toAssetHash"]),
            to_address=to_checksum_address(values["toAddress"]),
            amount=values["amount"],
        )

    def fetch_and_decode(
        self,
        rpc: ChainRPC,
        tx_hash: str,
        expected_emitter: str,
        kind: Union[EventKind, str]
    ) -> TransferEvent:
        """
        Fetch the receipt of ``tx_hash`` and decode its transfer event.

        Raises:
            ChainUnavailable: If the receipt is not available
        """
        record = rpc.get_receipt(tx_hash)
        if record is None:
            raise ChainUnavailable(f"{rpc.name}: no receipt for {tx_hash}")
        return self.decode(record, expected_emitter, kind)
