"""
Data models for the palette bridge bootstrap.
"""
from enum import Enum, IntEnum
from typing import Dict, Any, Optional, List, Tuple

from eth_utils import is_address
from pydantic import BaseModel, Field, field_validator

# Largest value a uint64 contract argument can hold
MAX_UINT64 = 2**64 - 1


class Router(IntEnum):
    """Relay chain routing tags for registered side chains."""
    BTC = 1
    ETH = 2
    ONT = 3
    NEO = 4
    COSMOS = 5
    BSC = 6
    HECO = 7
    QUORUM = 8
    ZILLIQA = 9


class EventKind(str, Enum):
    """Cross-chain transfer events emitted by the lock proxy."""
    LOCK = "lock"
    UNLOCK = "unlock"


class PendingCall(BaseModel):
    """A contract call ready to be signed"""
    to: str
    data: bytes
    value: int = 0
    gas: int
    gas_price: int = Field(..., alias="gasPrice")
    nonce: int
    chain_id: int = Field(..., alias="chainId")

    class Config:
        populate_by_name = True
        frozen = True

    def to_transaction(self) -> Dict[str, Any]:
        """Transaction dict in the shape eth_account expects"""
        return {
            "to": self.to,
            "data": "0x" + self.data.hex(),
            "value": self.value,
            "gas": self.gas,
            "gasPrice": self.gas_price,
            "nonce": self.nonce,
            "chainId": self.chain_id,
        }


class EventLog(BaseModel):
    """A single log entry emitted by a transaction"""
    address: str
    topics: List[str]
    data: bytes = b""
    log_index: int = Field(0, alias="logIndex")

    class Config:
        populate_by_name = True
        frozen = True

    @field_validator("topics", mode="before")
    @classmethod
    def _normalize_topics(cls, topics):
        normalized = []
        for topic in topics:
            if isinstance(topic, (bytes, bytearray)):
                topic = "0x" + bytes(topic).hex()
            normalized.append(topic.lower())
        return normalized

    @field_validator("data", mode="before")
    @classmethod
    def _hex_data(cls, data):
        if isinstance(data, str):
            return bytes.fromhex(data[2:] if data.startswith("0x") else data)
        return bytes(data)


class ConfirmationRecord(BaseModel):
    """Receipt of a confirmed transaction"""
    tx_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    status: int
    gas_used: int = Field(0, alias="gasUsed")
    logs: List[EventLog] = []

    class Config:
        populate_by_name = True
        frozen = True

    @property
    def succeeded(self) -> bool:
        return self.status == 1


class SideChainDescriptor(BaseModel):
    """Side chain registration data submitted to the relay chain"""
    chain_id: int = Field(..., ge=0, le=MAX_UINT64)
    data_contract: str
    router: Router = Router.QUORUM
    name: str

    class Config:
        frozen = True

    @field_validator("data_contract")
    @classmethod
    def _check_data_contract(cls, value):
        if not is_address(value):
            raise ValueError(f"data_contract is not an address: {value}")
        return value


class GenesisHeader(BaseModel):
    """A block header in its chain's native encoding, tagged with origin and height"""
    chain_id: int
    height: int
    block_hash: str
    encoded: bytes

    class Config:
        frozen = True


class ValidatorSet(BaseModel):
    """
    Ordered public keys allowed to attest blocks from ``epoch`` on.

    Epoch 0 stands for the genesis set of a chain whose validators never rotated.
    """
    epoch: int = 0
    public_keys: Tuple[bytes, ...]

    class Config:
        frozen = True

    def __len__(self) -> int:
        return len(self.public_keys)


class TransferEvent(BaseModel):
    """Decoded lock or unlock event"""
    kind: EventKind
    from_asset: Optional[str] = None
    from_address: Optional[str] = None
    to_chain_id: Optional[int] = None
    to_asset: str
    to_address: str
    amount: int = Field(..., ge=0)

    class Config:
        frozen = True


class PhaseResult(BaseModel):
    """Outcome of one genesis bootstrap phase"""
    phase: str
    record: ConfirmationRecord
    header: Optional[GenesisHeader] = None
    validators: Optional[ValidatorSet] = None

    class Config:
        frozen = True

    @property
    def tx_hash(self) -> str:
        return self.record.tx_hash
