"""
Header and validator-set encodings exchanged during the genesis bootstrap.

Both directions are byte-exact: the relay chain parses the side chain header
with go-ethereum's JSON header decoder, and the side chain cross chain manager
slices the validator list into fixed 67-byte entries.

The relay chain side assumes an Ethereum-compatible relay node: its header is
the RLP list of the go-ethereum header fields (keccak of that list is the
block hash) and the validator set travels in ``extraData`` as a 32-byte
vanity followed by an RLP list of public keys. A relay chain that serializes
headers natively and keeps its bookkeepers in a separate consensus payload
needs its own ``encode_header_rlp``/``extract_validators`` pair; the
67-byte key assembly does not change.
"""
import json
import logging
from typing import Any, Dict, List, Mapping, Tuple, Union

import rlp
from rlp.exceptions import DecodingError
from eth_keys import keys
from eth_utils import keccak

from .models import ValidatorSet

logger = logging.getLogger(__name__)

# (json name, kind); order is go-ethereum's Header field order
HEADER_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("parentHash", "bytes"),
    ("sha3Uncles", "bytes"),
    ("miner", "bytes"),
    ("stateRoot", "bytes"),
    ("transactionsRoot", "bytes"),
    ("receiptsRoot", "bytes"),
    ("logsBloom", "bytes"),
    ("difficulty", "int"),
    ("number", "int"),
    ("gasLimit", "int"),
    ("gasUsed", "int"),
    ("timestamp", "int"),
    ("extraData", "bytes"),
    ("mixHash", "bytes"),
    ("nonce", "bytes"),
)
OPTIONAL_HEADER_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("baseFeePerGas", "int"),
)

EXTRA_VANITY = 32

# Serialized public key prefix: ECDSA key type, then the secp256k1 curve label
KEY_TYPE_ECDSA = 0x12
CURVE_LABEL_SECP256K1 = 0x05
NO_COMPRESS_KEY_LEN = 67

BlockLike = Mapping[str, Any]


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return bytes.fromhex(value[2:] if value.startswith("0x") else value)
    raise TypeError(f"Cannot convert {type(value).__name__} to bytes")


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(value, "big")
    raise TypeError(f"Cannot convert {type(value).__name__} to int")


def _header_fields(block: BlockLike) -> List[Tuple[str, str, Any]]:
    fields = []
    for name, kind in HEADER_FIELDS:
        if name not in block:
            raise ValueError(f"Block is missing header field {name}")
        fields.append((name, kind, block[name]))
    for name, kind in OPTIONAL_HEADER_FIELDS:
        if block.get(name) is not None:
            fields.append((name, kind, block[name]))
    return fields


def encode_header_rlp(block: BlockLike) -> bytes:
    """RLP-encode the consensus fields of a block header"""
    items = []
    for _, kind, value in _header_fields(block):
        items.append(_to_int(value) if kind == "int" else _to_bytes(value))
    return rlp.encode(items)


def header_hash(block: BlockLike) -> str:
    """Keccak-256 of the RLP header, 0x-prefixed"""
    return "0x" + keccak(encode_header_rlp(block)).hex()


def encode_header_json(block: BlockLike) -> bytes:
    """
    Encode a header the way go-ethereum's ``Header.MarshalJSON`` does.

    Quantities are minimal 0x hex, byte fields are lowercase 0x hex, the hash
    is appended last and the output carries no whitespace.

    Args:
        block: Block as returned by ``eth_getBlockByNumber``

    Returns:
        UTF-8 JSON bytes
    """
    out: Dict[str, str] = {}
    for name, kind, value in _header_fields(block):
        if kind == "int":
            out[name] = hex(_to_int(value))
        else:
            out[name] = "0x" + _to_bytes(value).hex()
    out["hash"] = header_hash(block)
    return json.dumps(out, separators=(",", ":")).encode("utf-8")


def decode_header_json(data: Union[bytes, str]) -> Tuple[int, str]:
    """
    Decode a JSON header and check its hash.

    Args:
        data: Output of :func:`encode_header_json`

    Returns:
        Tuple of (block height, block hash)

    Raises:
        ValueError: If the JSON is malformed or the hash does not match the fields
    """
    try:
        obj = json.loads(data)
    except (TypeError, json.JSONDecodeError) as e:
        raise ValueError(f"Invalid header JSON: {e}")

    computed = header_hash(obj)
    claimed = obj.get("hash")
    if claimed is not None and claimed.lower() != computed:
        raise ValueError(f"Header hash mismatch: claimed {claimed}, computed {computed}")
    return _to_int(obj["number"]), computed


def extract_validators(extra_data: Any, epoch: int = 0) -> ValidatorSet:
    """
    Read the validator public keys out of a relay chain header's extra data.

    The extra data is a 32-byte vanity followed by an RLP list whose first
    element is the ordered list of validator public keys.

    Raises:
        ValueError: If the extra data does not carry a validator list
    """
    extra = _to_bytes(extra_data)
    if len(extra) <= EXTRA_VANITY:
        raise ValueError(f"Extra data too short to hold validators: {len(extra)} bytes")

    try:
        decoded = rlp.decode(extra[EXTRA_VANITY:], strict=False)
    except DecodingError as e:
        raise ValueError(f"Invalid validator extra data: {e}")

    if not isinstance(decoded, (list, tuple)) or not decoded or not isinstance(decoded[0], (list, tuple)):
        raise ValueError("Extra data does not start with a validator list")

    public_keys = []
    for raw in decoded[0]:
        key = bytes(raw)
        if len(key) not in (33, 64, 65):
            raise ValueError(f"Unexpected validator key length {len(key)}")
        public_keys.append(key)
    if not public_keys:
        raise ValueError("Validator list is empty")

    return ValidatorSet(epoch=epoch, public_keys=tuple(public_keys))


def uncompressed_key(public_key: bytes) -> bytes:
    """
    Return the 65-byte uncompressed (0x04 || X || Y) form of a secp256k1 key.

    Accepts 33-byte compressed, 64-byte raw and 65-byte uncompressed keys.
    """
    if len(public_key) == 33:
        raw = keys.PublicKey.from_compressed_bytes(public_key).to_bytes()
    elif len(public_key) == 65:
        if public_key[0] != 0x04:
            raise ValueError("Uncompressed key must start with 0x04")
        raw = keys.PublicKey(public_key[1:]).to_bytes()
    elif len(public_key) == 64:
        raw = keys.PublicKey(public_key).to_bytes()
    else:
        raise ValueError(f"Unsupported public key length {len(public_key)}")
    return b"\x04" + raw


def assemble_no_compress_keys(validators: ValidatorSet) -> bytes:
    """
    Serialize a validator set in the non-compressed form the cross chain
    manager expects: per key, ``0x12 || 0x05 || 0x04 || X || Y`` (67 bytes),
    concatenated in validator order.
    """
    out = bytearray()
    for key in validators.public_keys:
        out.append(KEY_TYPE_ECDSA)
        out.append(CURVE_LABEL_SECP256K1)
        out.extend(uncompressed_key(key))
    logger.debug(f"Assembled {len(validators)} validator keys ({len(out)} bytes)")
    return bytes(out)


def split_no_compress_keys(data: bytes) -> List[bytes]:
    """Inverse of :func:`assemble_no_compress_keys`, returning 65-byte keys."""
    if len(data) % NO_COMPRESS_KEY_LEN:
        raise ValueError(f"Key list length {len(data)} is not a multiple of {NO_COMPRESS_KEY_LEN}")
    result = []
    for offset in range(0, len(data), NO_COMPRESS_KEY_LEN):
        entry = data[offset:offset + NO_COMPRESS_KEY_LEN]
        if entry[0] != KEY_TYPE_ECDSA or entry[1] != CURVE_LABEL_SECP256K1:
            raise ValueError(f"Unexpected key prefix {entry[:2].hex()} at offset {offset}")
        result.append(entry[2:])
    return result
