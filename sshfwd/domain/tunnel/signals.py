"""
Single-fire notification primitive
"""
import threading
from typing import Optional


class OneShotSignal:
    """
    Notification fired at most once.

    Any number of threads may wait on it. Firing again is a no-op.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._event = threading.Event()
        self._lock = threading.Lock()

    def fire(self) -> bool:
        """Fire the signal. Returns False if it had already fired."""
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            return True

    def is_fired(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until fired or timeout; returns whether it fired"""
        return self._event.wait(timeout)

    def __repr__(self) -> str:
        return f"OneShotSignal({self.name!r}, fired={self.is_fired()})"
