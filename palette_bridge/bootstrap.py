"""
Genesis bootstrap between the Palette side chain and the relay chain.

Four independent phases establish mutual trust:

1. register the side chain on the relay chain's side chain manager;
2. approve the registration, once per relay validator;
3. push the side chain's current header to the relay chain's header sync;
4. pull the relay chain's epoch header and validator set into the side
   chain's cross chain manager.

No phase triggers the next and nothing is persisted locally; re-running a
phase simply submits it again. Ordering is the operator's call.
"""
import logging
import threading
from typing import Callable, Dict, Optional

from eth_abi.exceptions import EncodingError

from .abi import ContractRegistry, DEFAULT_REGISTRY
from .codec import (
    assemble_no_compress_keys,
    decode_header_json,
    encode_header_json,
    encode_header_rlp,
    extract_validators,
    header_hash,
)
from .config import BridgeConfig
from .engine import CancellationToken, TransactionEngine
from .exceptions import (
    BridgeError,
    Phase,
    PhaseError,
    ProtocolViolation,
    TransactionReverted,
)
from .models import ConfirmationRecord, GenesisHeader, PhaseResult, SideChainDescriptor
from .rpc import ChainRPC
from .signer import Signer

logger = logging.getLogger(__name__)


class GenesisBootstrap:
    """
    Runs the genesis bootstrap phases.

    ``side_engine`` signs for the Palette operator, ``relay_engine`` for the
    relay operator. Approvals may be signed by other relay validators; each
    gets its own engine (and nonce counter) on the relay chain's RPC.
    """

    def __init__(
        self,
        side_engine: TransactionEngine,
        relay_engine: TransactionEngine,
        side_chain_manager: str,
        header_sync: str,
        cross_chain_manager: str,
        registry: ContractRegistry = DEFAULT_REGISTRY,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            side_engine: Engine for the Palette chain
            relay_engine: Engine for the relay chain operator
            side_chain_manager: Relay chain side chain manager address
            header_sync: Relay chain header sync address
            cross_chain_manager: Palette cross chain manager address
            registry: Contract registry used to encode calls
            logger: Optional logger instance
        """
        self.side_engine = side_engine
        self.relay_engine = relay_engine
        self.side_chain_manager = side_chain_manager
        self.header_sync = header_sync
        self.cross_chain_manager = cross_chain_manager
        self.registry = registry
        self.logger = logger or logging.getLogger(__name__)
        self._approvers: Dict[str, TransactionEngine] = {
            relay_engine.address.lower(): relay_engine
        }
        self._approvers_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: BridgeConfig,
        palette_signer: Optional[Signer] = None,
        relay_signer: Optional[Signer] = None,
        logger: Optional[logging.Logger] = None
    ) -> "GenesisBootstrap":
        """
        Build both engines from a configuration.

        Signers default to the keys in ``PALETTE_PRIVATE_KEY`` and
        ``RELAY_PRIVATE_KEY``.

        Raises:
            ValueError: If a signer is neither passed nor set in the environment
        """
        palette_signer = palette_signer or config.palette_signer()
        relay_signer = relay_signer or config.relay_signer()
        if palette_signer is None or relay_signer is None:
            raise ValueError("Both palette and relay signers are required")

        def engine(rpc_url: str, name: str, signer: Signer) -> TransactionEngine:
            return TransactionEngine(
                ChainRPC(rpc_url, name=name),
                signer,
                gas_limit=config.gas_limit,
                gas_price_multiplier=config.gas_multiplier(),
                poll_interval=config.poll_interval,
                max_wait=config.max_wait,
                logger=logger,
            )

        return cls(
            side_engine=engine(config.palette_rpc_url, "palette", palette_signer),
            relay_engine=engine(config.relay_rpc_url, "relay", relay_signer),
            side_chain_manager=config.side_chain_manager,
            header_sync=config.header_sync,
            cross_chain_manager=config.cross_chain_manager,
            logger=logger,
        )

    def approver_engine(self, approver: Optional[Signer] = None) -> TransactionEngine:
        """Relay chain engine signing with ``approver`` (the relay operator by default)"""
        if approver is None:
            return self.relay_engine
        key = approver.address.lower()
        with self._approvers_lock:
            engine = self._approvers.get(key)
            if engine is None:
                base = self.relay_engine
                engine = TransactionEngine(
                    base.rpc,
                    approver,
                    gas_limit=base.gas_limit,
                    gas_price_multiplier=base.gas_price_multiplier,
                    registry=base.registry,
                    waiter=base.waiter,
                    logger=self.logger,
                )
                self._approvers[key] = engine
            return engine

    def _run(
        self,
        phase: Phase,
        engine: TransactionEngine,
        destination: str,
        entry_point: str,
        build_payload: Callable[[], bytes],
        cancel: Optional[CancellationToken]
    ) -> ConfirmationRecord:
        """Build, submit and confirm one phase call, converting failures to PhaseError"""
        try:
            payload = build_payload()
            self.logger.debug(f"{phase.value}: {entry_point} payload {len(payload)} bytes to {destination}")
            record = engine.submit(destination, payload, cancel=cancel)
        except TransactionReverted as e:
            violation = ProtocolViolation(entry_point, e.reason, e.tx_hash)
            self.logger.error(f"Phase {phase.value} rejected by {entry_point}: {violation.reason or 'execution reverted'}")
            raise PhaseError(phase, violation) from e
        except (BridgeError, EncodingError, ValueError) as e:
            self.logger.error(f"Phase {phase.value} failed: {e}")
            raise PhaseError(phase, e) from e

        self.logger.info(f"Phase {phase.value} done: tx {record.tx_hash}, block {record.block_number}")
        return record

    def register_side_chain(
        self,
        descriptor: SideChainDescriptor,
        cancel: Optional[CancellationToken] = None
    ) -> PhaseResult:
        """
        Phase 1: register the side chain on the relay chain.

        A duplicate registration is rejected by the side chain manager and
        surfaces as a PhaseError wrapping ProtocolViolation; it is not retried.

        Args:
            descriptor: Side chain id, data contract, router and name
            cancel: Token that abandons the confirmation wait

        Returns:
            PhaseResult with the registration receipt

        Raises:
            PhaseError: If the registration could not be confirmed
        """
        self.logger.info(
            f"Registering side chain {descriptor.chain_id} ({descriptor.name}, "
            f"router {descriptor.router.name}) on {self.relay_engine.rpc.name}"
        )
        record = self._run(
            Phase.REGISTER,
            self.relay_engine,
            self.side_chain_manager,
            "registerSideChain",
            lambda: self.registry.encode_call(
                "registerSideChain",
                descriptor.chain_id,
                descriptor.data_contract,
                int(descriptor.router),
                descriptor.name,
            ),
            cancel,
        )
        return PhaseResult(phase=Phase.REGISTER.value, record=record)

    def approve_registration(
        self,
        chain_id: int,
        approver: Optional[Signer] = None,
        cancel: Optional[CancellationToken] = None
    ) -> PhaseResult:
        """
        Phase 2: approve a pending registration as one relay validator.

        One call submits one approval; the relay chain activates the side
        chain once enough validators have approved.

        Args:
            chain_id: Side chain id being approved
            approver: Validator signer (defaults to the relay operator)
            cancel: Token that abandons the confirmation wait

        Raises:
            PhaseError: If the approval could not be confirmed
        """
        engine = self.approver_engine(approver)
        self.logger.info(f"Approving side chain {chain_id} as {engine.address}")
        record = self._run(
            Phase.APPROVE,
            engine,
            self.side_chain_manager,
            "approveRegisterSideChain",
            lambda: self.registry.encode_call("approveRegisterSideChain", chain_id),
            cancel,
        )
        return PhaseResult(phase=Phase.APPROVE.value, record=record)

    def push_genesis(
        self,
        chain_id: int,
        cancel: Optional[CancellationToken] = None
    ) -> PhaseResult:
        """
        Phase 3: sync the side chain's current header to the relay chain.

        Args:
            chain_id: Side chain id as registered on the relay chain
            cancel: Token that abandons the confirmation wait

        Returns:
            PhaseResult carrying the submitted header

        Raises:
            PhaseError: If the header could not be fetched, encoded or confirmed
        """
        header: Dict[str, GenesisHeader] = {}

        def build() -> bytes:
            height, block = self.side_engine.rpc.current_header()
            encoded = encode_header_json(block)
            decoded_height, block_hash = decode_header_json(encoded)
            if decoded_height != height:
                raise ValueError(f"Encoded header height {decoded_height} does not match block {height}")
            header["value"] = GenesisHeader(
                chain_id=chain_id, height=height, block_hash=block_hash, encoded=encoded
            )
            self.logger.info(f"Syncing {self.side_engine.rpc.name} header {height} ({block_hash}) to relay chain")
            return self.registry.encode_call("syncGenesisBlock", chain_id, encoded)

        record = self._run(
            Phase.PUSH_GENESIS, self.relay_engine, self.header_sync, "syncGenesisBlock", build, cancel
        )
        return PhaseResult(phase=Phase.PUSH_GENESIS.value, record=record, header=header["value"])

    def pull_genesis(
        self,
        epoch: int = 0,
        cancel: Optional[CancellationToken] = None
    ) -> PhaseResult:
        """
        Phase 4: install the relay chain's epoch header and validators on the side chain.

        Args:
            epoch: Relay chain block height holding the validator set
            cancel: Token that abandons the confirmation wait

        Returns:
            PhaseResult carrying the header and validator set

        Raises:
            PhaseError: If the header or validators could not be read, or the call failed
        """
        parts: Dict[str, object] = {}

        def build() -> bytes:
            relay_rpc = self.relay_engine.rpc
            block = relay_rpc.get_block(epoch)
            raw_header = encode_header_rlp(block)
            validators = extract_validators(block["extraData"], epoch)
            key_list = assemble_no_compress_keys(validators)
            parts["header"] = GenesisHeader(
                chain_id=relay_rpc.chain_id,
                height=int(block["number"]),
                block_hash=header_hash(block),
                encoded=raw_header,
            )
            parts["validators"] = validators
            self.logger.info(
                f"Installing relay header {block['number']} with {len(validators)} validators "
                f"on {self.side_engine.rpc.name}"
            )
            return self.registry.encode_call("initGenesisBlock", raw_header, key_list)

        record = self._run(
            Phase.PULL_GENESIS, self.side_engine, self.cross_chain_manager, "initGenesisBlock", build, cancel
        )
        return PhaseResult(
            phase=Phase.PULL_GENESIS.value,
            record=record,
            header=parts["header"],
            validators=parts["validators"],
        )
