"""
Nonce allocation for a single signing account.
"""
import logging
import threading
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class NonceSource(Protocol):
    def pending_nonce(self, address: str) -> int:
        ...


class NonceAllocator:
    """
    Hands out transaction nonces for one address on one chain.

    The counter is seeded from the chain's pending nonce on first use and then
    advanced locally, so the allocator must be the only source of nonces for
    the address while it is alive. Every read and write of the counter happens
    under one lock, so concurrent callers never see the same value.
    """

    def __init__(self, source: NonceSource, address: str):
        self.source = source
        self.address = address
        self._next: Optional[int] = None
        self._lock = threading.Lock()

    def allocate(self) -> int:
        """
        Reserve the next nonce.

        Returns:
            The reserved nonce

        Raises:
            ChainUnavailable: If seeding from the chain fails; the allocator stays unseeded
        """
        with self._lock:
            if self._next is None:
                # Assign only after the query succeeded
                seed = self.source.pending_nonce(self.address)
                logger.debug(f"Seeded nonce for {self.address} at {seed}")
                self._next = seed
            nonce = self._next
            self._next += 1
            return nonce

    def peek(self) -> Optional[int]:
        """Next nonce that would be handed out, or None before seeding"""
        with self._lock:
            return self._next

    def reset(self) -> None:
        """Drop the local counter so the next allocation re-reads the chain."""
        with self._lock:
            if self._next is not None:
                logger.info(f"Resetting nonce counter for {self.address} (was {self._next})")
            self._next = None
