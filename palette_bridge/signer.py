"""
Signing capability for bridge transactions.

A signer only holds a key and signs; it never talks to a node. Transport lives
in :mod:`palette_bridge.rpc` and the two are composed by the transaction engine.
"""
import os
from typing import Any, Dict, Optional, Protocol

from eth_account import Account
from eth_account.signers.local import LocalAccount


class Signer(Protocol):
    """Protocol for custom signers"""
    address: str

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        """Sign transaction and return signed tx object"""
        ...


class LocalSigner:
    """Signer backed by a private key held in memory"""

    def __init__(self, private_key: str):
        if not private_key:
            raise ValueError("private_key must be provided")
        self._account: LocalAccount = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        return self._account.sign_transaction(transaction_dict)

    @classmethod
    def from_env(cls, var_name: str) -> Optional["LocalSigner"]:
        """
        Build a signer from a private key stored in an environment variable.

        Args:
            var_name: Name of the environment variable

        Returns:
            LocalSigner, or None if the variable is unset
        """
        key = os.environ.get(var_name)
        if not key:
            return None
        return cls(key)

    def __repr__(self) -> str:
        return f"LocalSigner({self.address})"
