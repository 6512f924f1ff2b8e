"""
Bootstrap configuration.

Settings come from a JSON file; RPC URLs and the config path can be overridden
from the environment. Private keys are only ever read from the environment.
"""
import json
import logging
import os
import threading
from decimal import Decimal
from typing import ClassVar, Dict, Optional, Union

from pydantic import BaseModel, Field, field_validator

from .events import DEFAULT_MIN_LOGS, LogCheckSeverity
from .models import Router, SideChainDescriptor
from .rpc import validate_rpc_url
from .signer import LocalSigner

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "PALETTE_CONFIG_PATH"
PALETTE_RPC_ENV = "PALETTE_RPC_URL"
RELAY_RPC_ENV = "RELAY_RPC_URL"
PALETTE_KEY_ENV = "PALETTE_PRIVATE_KEY"
RELAY_KEY_ENV = "RELAY_PRIVATE_KEY"

DEFAULT_CONFIG_PATH = "config.json"


class BridgeConfig(BaseModel):
    """Everything the bootstrap needs to reach both chains"""
    palette_rpc_url: str = Field(..., alias="paletteRpcUrl")
    relay_rpc_url: str = Field(..., alias="relayRpcUrl")

    # Side chain as registered on the relay chain
    side_chain_id: int = Field(..., alias="sideChainId")
    side_chain_name: str = Field("palette", alias="sideChainName")
    router: Router = Router.QUORUM

    # Palette contracts
    data_contract: str = Field(..., alias="dataContract")
    cross_chain_manager: str = Field(..., alias="crossChainManager")
    lock_proxy: Optional[str] = Field(None, alias="lockProxy")
    wrapper: Optional[str] = None

    # Relay chain entry points
    side_chain_manager: str = Field(..., alias="sideChainManager")
    header_sync: str = Field(..., alias="headerSync")

    gas_limit: int = Field(100000, alias="gasLimit", gt=0)
    gas_price_multiplier: Decimal = Field(Decimal(1), alias="gasPriceMultiplier", gt=0)
    poll_interval: float = Field(1.0, alias="pollInterval", gt=0)
    max_wait: Optional[float] = Field(None, alias="maxWait")
    min_logs: int = Field(DEFAULT_MIN_LOGS, alias="minLogs", ge=0)
    log_check: LogCheckSeverity = Field(LogCheckSeverity.WARN, alias="logCheck")
    genesis_epoch: int = Field(0, alias="genesisEpoch", ge=0)

    _cache: ClassVar[Dict[str, "BridgeConfig"]] = {}
    _cache_lock: ClassVar[threading.Lock] = threading.Lock()

    class Config:
        populate_by_name = True
        frozen = True

    @field_validator("palette_rpc_url", "relay_rpc_url")
    @classmethod
    def _check_rpc_url(cls, v: str) -> str:
        validate_rpc_url(v)
        return v

    @field_validator("router", mode="before")
    @classmethod
    def _router_by_name(cls, v):
        if isinstance(v, str):
            if v.isdigit():
                return int(v)
            try:
                return Router[v.upper()]
            except KeyError:
                raise ValueError(f"Unknown router '{v}'. Available: {', '.join(r.name for r in Router)}")
        return v

    @classmethod
    def load(cls, path: Optional[str] = None) -> "BridgeConfig":
        """
        Load a configuration file, applying environment overrides.

        Parsed files are cached per path; call :meth:`clear_cache` to force a
        re-read.

        Args:
            path: JSON file path (defaults to ``$PALETTE_CONFIG_PATH`` or ``config.json``)

        Returns:
            The configuration

        Raises:
            ValueError: If the file is missing, not JSON, or fails validation
        """
        path = path or os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH)
        key = os.path.abspath(path)

        with cls._cache_lock:
            cached = cls._cache.get(key)
        if cached is None:
            try:
                with open(path, "r", encoding="utf-8") as f:
                    raw = json.load(f)
            except FileNotFoundError:
                raise ValueError(f"Config file not found: {path}")
            except json.JSONDecodeError as e:
                raise ValueError(f"Config file {path} is not valid JSON: {e}")
            cached = cls.model_validate(raw)
            logger.debug(f"Loaded bridge config from {path}")
            with cls._cache_lock:
                cls._cache[key] = cached

        return cached.with_env_overrides()

    @classmethod
    def clear_cache(cls) -> None:
        with cls._cache_lock:
            cls._cache.clear()

    def with_env_overrides(self) -> "BridgeConfig":
        """Copy of this config with RPC URLs replaced from the environment"""
        overrides: Dict[str, str] = {}
        for field, env_var in (("palette_rpc_url", PALETTE_RPC_ENV), ("relay_rpc_url", RELAY_RPC_ENV)):
            value = os.environ.get(env_var)
            if value:
                validate_rpc_url(value)
                overrides[field] = value
        if not overrides:
            return self
        return self.model_copy(update=overrides)

    def descriptor(self) -> SideChainDescriptor:
        """Registration data for the side chain"""
        return SideChainDescriptor(
            chain_id=self.side_chain_id,
            data_contract=self.data_contract,
            router=self.router,
            name=self.side_chain_name,
        )

    def gas_multiplier(self) -> Union[int, Decimal]:
        """The multiplier as an int when it is integral, so pricing stays exact"""
        if self.gas_price_multiplier == self.gas_price_multiplier.to_integral_value():
            return int(self.gas_price_multiplier)
        return self.gas_price_multiplier

    @staticmethod
    def palette_signer() -> Optional[LocalSigner]:
        return LocalSigner.from_env(PALETTE_KEY_ENV)

    @staticmethod
    def relay_signer() -> Optional[LocalSigner]:
        return LocalSigner.from_env(RELAY_KEY_ENV)
