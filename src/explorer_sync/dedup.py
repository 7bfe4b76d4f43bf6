"""Last-seen address tracking for deployed contracts."""

import threading
from typing import Dict, Optional


class AddressDedupTracker:
    """
    Maps contract name -> last deployed address seen by this process.

    Only there to absorb redundant filesystem events (editors and build tools
    often write the same file more than once). Nothing is persisted: a new
    process starts empty and re-uploads what it finds.
    """

    def __init__(self) -> None:
        self._addresses: Dict[str, str] = {}
        self._lock = threading.Lock()

    def should_sync(self, name: str, address: Optional[str]) -> bool:
        """
        Check whether ``address`` is new for ``name`` and, if so, record it.

        The check and the write happen under one lock so that two events for
        the same contract can never both pass.

        Args:
            name: Contract name
            address: Deployed address, or None if not deployed

        Returns:
            True if the address is non-null and differs from the stored one
        """
        if not address:
            return False

        with self._lock:
            if self._addresses.get(name) == address:
                return False
            self._addresses[name] = address
            return True

    def record(self, name: str, address: str) -> None:
        with self._lock:
            self._addresses[name] = address

    def last_address(self, name: str) -> Optional[str]:
        with self._lock:
            return self._addresses.get(name)

    def __len__(self) -> int:
        with self._lock:
            return len(self._addresses)
