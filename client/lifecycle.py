"""Shutdown coordination for the chat client."""

import os
import signal
import threading
from typing import Callable, Optional

from client.banner import FAREWELL
from client.session import Session
from common.logging_setup import get_logger
from transport.line_connection import LineConnection, SendError
from ui.render_surface import RenderSurface
from ui.terminal_input import TerminalInput

logger = get_logger(__name__)


class LifecycleController:
    """
    Single authority for tearing the client down.

    ``shutdown`` runs its teardown exactly once no matter how many threads
    call it; later callers wait for the first to finish. Signal handlers
    only call ``request_shutdown``, and a supervisor thread performs the
    teardown outside signal context before ending the process. The main
    thread may still be parked in a terminal read at that point, so the
    process is ended with ``exit_func`` rather than by joining it.
    """

    def __init__(
        self,
        session: Session,
        surface: RenderSurface,
        terminal: TerminalInput,
        connection: Optional[LineConnection] = None,
        disconnect_notice: str = "exit",
        exit_func: Callable[[int], None] = os._exit,
    ):
        """
        Initialize lifecycle controller.

        Args:
            session: Shared session flags
            surface: Render surface to close
            terminal: Terminal input whose mode must be restored
            connection: Server connection (None in offline mode)
            disconnect_notice: Line sent to the server before closing
            exit_func: Ends the process after a requested shutdown
        """
        self.session = session
        self.surface = surface
        self.terminal = terminal
        self.connection = connection
        self.disconnect_notice = disconnect_notice
        self._exit_func = exit_func
        self._lock = threading.Lock()
        self._started = False
        self._finished = threading.Event()
        self._requested = threading.Event()
        self._reason: Optional[str] = None
        self._supervisor: Optional[threading.Thread] = None

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM to request_shutdown. Main thread only."""
        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)

    def _handle_signal(self, signum, frame) -> None:
        self.request_shutdown(signal.Signals(signum).name)

    def request_shutdown(self, reason: str = "requested") -> None:
        """Ask the supervisor thread to shut down. Safe from a signal handler."""
        if self._reason is None:
            self._reason = reason
        self.session.request_exit()
        self._requested.set()

    def start_supervisor(self) -> None:
        """Start the thread that acts on request_shutdown."""
        if self._supervisor is not None:
            return
        self._supervisor = threading.Thread(
            target=self._supervise,
            daemon=True,
            name="chat-lifecycle",
        )
        self._supervisor.start()

    def _supervise(self) -> None:
        self._requested.wait()
        if self.shutdown(self._reason or "requested"):
            self._exit_func(0)

    def shutdown(self, reason: str = "quit") -> bool:
        """
        Tear everything down once.

        Args:
            reason: Why shutdown happened, for the log

        Returns:
            True for the call that performed the teardown, False otherwise
        """
        with self._lock:
            first = not self._started
            self._started = True

        if not first:
            self._finished.wait()
            return False

        logger.info(f"Shutting down ({reason})")
        try:
            self._teardown()
        finally:
            self._finished.set()
        return True

    def _teardown(self) -> None:
        self.session.request_exit()

        if self.connection is not None:
            if self.session.connected and self.disconnect_notice:
                try:
                    self.connection.send(self.disconnect_notice)
                except SendError as e:
                    logger.debug(f"Disconnect notice not sent: {e}")
            self.connection.close()
        self.session.mark_disconnected()

        try:
            self.surface.close()
        except Exception as e:
            logger.debug(f"Error closing render surface: {e}")

        self.terminal.restore()

        try:
            self.surface.console.print(FAREWELL)
        except Exception as e:
            logger.debug(f"Error printing farewell: {e}")

        logger.info("Shutdown complete")
