"""
FoxTab - Scan Registry
Tracks live scans so they can all be stopped at once (shutdown, unload).
"""

import logging
import threading
from typing import List

from foxtab.runner import ScanSupervisor


logger = logging.getLogger(__name__)


class ScanRegistry:
    """Thread-safe set of running supervisors, by identity."""

    def __init__(self):
        self._lock = threading.Lock()
        self._scans: List[ScanSupervisor] = []

    def register(self, supervisor: ScanSupervisor):
        with self._lock:
            if not any(s is supervisor for s in self._scans):
                self._scans.append(supervisor)

    def unregister(self, supervisor: ScanSupervisor) -> bool:
        """Remove a supervisor; returns False if it was not registered."""
        with self._lock:
            for i, s in enumerate(self._scans):
                if s is supervisor:
                    del self._scans[i]
                    return True
        return False

    def snapshot(self) -> List[ScanSupervisor]:
        with self._lock:
            return list(self._scans)

    def __len__(self) -> int:
        with self._lock:
            return len(self._scans)

    def __contains__(self, supervisor) -> bool:
        with self._lock:
            return any(s is supervisor for s in self._scans)

    def stop_all(self) -> int:
        """Request cancellation of every registered scan and clear the set.

        Does not wait for any process to exit. Returns how many were stopped.
        """
        with self._lock:
            scans = list(self._scans)
            self._scans.clear()

        for supervisor in scans:
            try:
                supervisor.stop()
            except Exception:
                logger.exception("Failed to stop scan %s", supervisor.scan_id)
        if scans:
            logger.info("Stopped %d scan(s)", len(scans))
        return len(scans)
