"""Per-process chat session state."""

import threading

from common.logging_setup import get_logger

logger = get_logger(__name__)


def validate_username(name: str, min_length: int = 2, max_length: int = 32) -> str:
    """
    Check a username against the length rules.

    Args:
        name: Candidate username, already stripped
        min_length: Shortest allowed name
        max_length: Longest allowed name

    Returns:
        The username unchanged

    Raises:
        ValueError: If the name is too short or too long
    """
    if not min_length <= len(name) <= max_length:
        raise ValueError(f"Username must be {min_length}-{max_length} characters")
    return name


class Session:
    """
    State shared by the input thread, the receiver thread and shutdown.

    ``username`` is only changed from the input thread. The two flags are
    events so that a write from one thread is seen by the other's next
    check without taking any lock.
    """

    def __init__(self, username: str):
        self.username = username
        self._connected = threading.Event()
        self._should_exit = threading.Event()
        self._transition_lock = threading.Lock()
        self._was_connected = False

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    @property
    def should_exit(self) -> bool:
        return self._should_exit.is_set()

    def mark_connected(self) -> None:
        """
        Record that the connection is established.

        Raises:
            RuntimeError: If this session already had a connection
        """
        with self._transition_lock:
            if self._was_connected:
                raise RuntimeError("Session already had a connection")
            self._was_connected = True
            self._connected.set()

    def mark_disconnected(self) -> bool:
        """
        Clear the connected flag.

        Returns:
            True only for the call that actually cleared the flag
        """
        with self._transition_lock:
            if not self._connected.is_set():
                return False
            self._connected.clear()
        logger.info("Session disconnected")
        return True

    def request_exit(self) -> None:
        self._should_exit.set()
