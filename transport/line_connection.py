"""Line-oriented TCP connection for Terminal Chat.

This module owns the client socket and exposes a blocking,
newline-delimited text interface on top of it:

- ``send`` writes one line and appends the terminating newline
- ``receive`` blocks until one complete line (or EOF) is available
- ``close`` is idempotent and unblocks a receive running in another thread
"""

import enum
import socket
import threading
from typing import Optional

from common.logging_setup import get_logger

logger = get_logger(__name__)

LINE_TERMINATOR = b"\n"
ENCODING = "utf-8"


class ConnectErrorReason(enum.Enum):
    """Why a connection attempt failed."""

    SOCKET_CREATE_FAILED = "socket_create_failed"
    INVALID_ADDRESS = "invalid_address"
    CONNECT_REFUSED_OR_UNREACHABLE = "connect_refused_or_unreachable"


class SendErrorReason(enum.Enum):
    """Why a send failed."""

    BROKEN_PIPE = "broken_pipe"
    RESET = "reset"
    OTHER = "other"


class ReceiveErrorReason(enum.Enum):
    """Why a receive failed."""

    CLOSED_LOCALLY = "closed_locally"
    SOCKET_ERROR = "socket_error"


class TransportError(Exception):
    """Base class for connection errors, carrying a reason code."""

    def __init__(self, reason: enum.Enum, detail: str = ""):
        self.reason = reason
        self.detail = detail
        message = reason.value
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ConnectError(TransportError):
    """Raised when the socket cannot be created or connected."""


class SendError(TransportError):
    """Raised when a line cannot be written to the peer."""

    @property
    def peer_gone(self) -> bool:
        """True when the peer has closed or reset the connection."""
        return self.reason in (SendErrorReason.BROKEN_PIPE, SendErrorReason.RESET)


class ReceiveError(TransportError):
    """Raised when reading from the socket fails."""


def _send_reason(error: OSError) -> SendErrorReason:
    if isinstance(error, BrokenPipeError):
        return SendErrorReason.BROKEN_PIPE
    if isinstance(error, ConnectionResetError):
        return SendErrorReason.RESET
    return SendErrorReason.OTHER


class LineConnection:
    """
    A connected TCP socket speaking newline-terminated UTF-8 lines.

    Instances are created with :meth:`connect`. The read side is meant to be
    used by one thread and the write side by another; :meth:`close` may be
    called from any thread, any number of times.
    """

    def __init__(
        self,
        sock: socket.socket,
        peer_address: str,
        peer_port: int,
        recv_buffer_size: int = 4096,
    ):
        """
        Wrap an already connected socket.

        Args:
            sock: Connected stream socket
            peer_address: Address of the remote end
            peer_port: Port of the remote end
            recv_buffer_size: Bytes requested per socket read
        """
        self._sock = sock
        self.peer_address = peer_address
        self.peer_port = peer_port
        self.recv_buffer_size = recv_buffer_size
        self._buffer = b""
        self._eof = False
        self._closed = False
        self._close_lock = threading.Lock()

    @classmethod
    def connect(
        cls,
        host: str,
        port: int,
        recv_buffer_size: int = 4096,
    ) -> "LineConnection":
        """
        Open a stream socket and connect it, blocking with no timeout.

        Args:
            host: Server host name or address
            port: Server port

        Returns:
            Connected LineConnection

        Raises:
            ConnectError: If the address is invalid, the socket cannot be
                created, or the connect is refused or unreachable
        """
        try:
            addresses = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
        except (socket.gaierror, UnicodeError, OverflowError, TypeError) as e:
            raise ConnectError(ConnectErrorReason.INVALID_ADDRESS, f"{host}:{port} ({e})")

        if not addresses:
            raise ConnectError(ConnectErrorReason.INVALID_ADDRESS, f"{host}:{port}")

        last_error: Optional[OSError] = None
        for family, sock_type, proto, _, sockaddr in addresses:
            try:
                sock = socket.socket(family, sock_type, proto)
            except OSError as e:
                raise ConnectError(ConnectErrorReason.SOCKET_CREATE_FAILED, str(e))

            try:
                sock.connect(sockaddr)
            except OSError as e:
                last_error = e
                sock.close()
                continue

            logger.info(f"Connected to {host}:{port}")
            return cls(sock, host, port, recv_buffer_size=recv_buffer_size)

        raise ConnectError(
            ConnectErrorReason.CONNECT_REFUSED_OR_UNREACHABLE,
            f"{host}:{port} ({last_error})",
        )

    @property
    def closed(self) -> bool:
        """Whether close() has been called."""
        return self._closed

    def send(self, line: str) -> None:
        """
        Send one line, appending the newline terminator.

        Args:
            line: Text without a trailing newline

        Raises:
            SendError: If the peer has gone away or the write fails
        """
        if self._closed:
            raise SendError(SendErrorReason.OTHER, "connection closed")

        data = line.encode(ENCODING) + LINE_TERMINATOR
        try:
            # sendall retries short writes until the whole line is out
            self._sock.sendall(data)
        except OSError as e:
            reason = _send_reason(e)
            logger.warning(f"Send to {self.peer_address}:{self.peer_port} failed: {e}")
            raise SendError(reason, str(e))

        logger.debug(f"Sent {len(data)} bytes")

    def receive(self) -> Optional[str]:
        """
        Block until one complete line is available.

        Bytes are buffered across reads, so several lines arriving in one
        read are returned by successive calls. A final fragment without a
        newline is returned once before EOF is reported.

        Returns:
            The line with its trailing newline stripped, or None when the
            peer has shut the connection down

        Raises:
            ReceiveError: If the socket read fails
        """
        while LINE_TERMINATOR not in self._buffer:
            if self._eof:
                if self._buffer:
                    fragment, self._buffer = self._buffer, b""
                    return fragment.decode(ENCODING, errors="replace")
                return None

            if self._closed:
                raise ReceiveError(ReceiveErrorReason.CLOSED_LOCALLY)

            try:
                chunk = self._sock.recv(self.recv_buffer_size)
            except OSError as e:
                raise ReceiveError(ReceiveErrorReason.SOCKET_ERROR, str(e))

            if not chunk:
                logger.info("Peer closed connection")
                self._eof = True
                continue

            logger.debug(f"Received {len(chunk)} bytes")
            self._buffer += chunk

        line, _, self._buffer = self._buffer.partition(LINE_TERMINATOR)
        return line.decode(ENCODING, errors="replace")

    def close(self) -> None:
        """Close the socket. Safe to call more than once and from any thread."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        try:
            # Wakes a recv() blocked in another thread
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug(f"Error shutting down socket: {e}")

        try:
            self._sock.close()
        except OSError as e:
            logger.debug(f"Error closing socket: {e}")

        logger.info("Connection closed")
