"""Background receiver loop for the chat client."""

import enum
import threading
from typing import Optional

from client.session import Session
from common.logging_setup import get_logger
from transport.line_connection import LineConnection, ReceiveError
from ui.render_surface import RenderSurface

logger = get_logger(__name__)

STATUS_SERVER_DISCONNECTED = "Server disconnected"
STATUS_CONNECTION_ERROR = "Connection error"


class ReceiverState(enum.Enum):
    WAITING_FOR_DATA = "waiting_for_data"
    STOPPED = "stopped"


class ReceiverLoop:
    """
    Thread that owns the read side of the connection.

    Every received line goes to the chat history. On EOF or a read error
    the session is marked disconnected and the status bar says why; the
    loop then stops for good. When shutdown closed the socket, the loop
    stops without touching the status bar.
    """

    def __init__(
        self,
        connection: LineConnection,
        session: Session,
        surface: RenderSurface,
    ):
        self.connection = connection
        self.session = session
        self.surface = surface
        self.state = ReceiverState.STOPPED
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the receiver thread."""
        if self._thread is not None:
            return

        self.state = ReceiverState.WAITING_FOR_DATA
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name="chat-receiver",
        )
        self._thread.start()
        logger.debug("Receiver loop started")

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread:
            self._thread.join(timeout=timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _disconnected(self, status: str) -> None:
        # Only the call that flips the flag reports it
        if self.session.mark_disconnected() and not self.session.should_exit:
            self.surface.set_status(status, is_error=True)

    def _run(self) -> None:
        """Receiver thread main loop."""
        try:
            while not self.session.should_exit:
                try:
                    line = self.connection.receive()
                except ReceiveError as e:
                    logger.warning(f"Receive failed: {e}")
                    self._disconnected(STATUS_CONNECTION_ERROR)
                    break

                if line is None:
                    logger.info("Server closed the connection")
                    self._disconnected(STATUS_SERVER_DISCONNECTED)
                    break

                self.surface.append_chat(line)
        except Exception as e:
            logger.error(f"Error in receiver loop: {e}")
            self._disconnected(STATUS_CONNECTION_ERROR)
        finally:
            self.state = ReceiverState.STOPPED
            logger.debug("Receiver loop stopped")
