"""Line-based TCP chat server that the terminal client talks to."""

import queue
import socket
import threading
import time
from typing import Dict, List, Optional, Tuple

from common.logging_setup import get_logger

logger = get_logger(__name__)

ENCODING = "utf-8"
EXIT_COMMAND = "exit"


def welcome_message(name: str) -> str:
    return (
        "=== Welcome to Terminal Chat Server ===\n"
        f"Your username: {name}\n"
        f"Type '{EXIT_COMMAND}' to quit\n"
        "===================================\n"
    )


class ChatClientHandle:
    """
    One connected client on the server side.

    Outgoing lines go through a bounded queue drained by a writer thread,
    so a slow client never stalls a broadcast.
    """

    def __init__(
        self,
        sock: socket.socket,
        addr: tuple,
        name: str,
        queue_size: int = 256,
    ):
        self.sock = sock
        self.addr = addr
        self.name = name
        self._messages: "queue.Queue[Optional[str]]" = queue.Queue(maxsize=queue_size)
        self._writer: Optional[threading.Thread] = None
        self._closed = False
        self._close_lock = threading.Lock()

    def start_writer(self) -> None:
        self._writer = threading.Thread(
            target=self._write_loop,
            daemon=True,
            name=f"chat-writer-{self.name}",
        )
        self._writer.start()

    def enqueue(self, message: str) -> bool:
        """
        Queue a message for this client.

        Returns:
            False if the client's queue is full
        """
        if self._closed:
            return False
        try:
            self._messages.put_nowait(message)
            return True
        except queue.Full:
            return False

    def _write_loop(self) -> None:
        while True:
            message = self._messages.get()
            if message is None:
                break
            try:
                self.sock.sendall((message + "\n").encode(ENCODING))
            except OSError as e:
                logger.error(f"Error writing to client {self.name}: {e}")
                break
        self.close()

    def close(self) -> None:
        """Close the client socket. Safe to call more than once."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        try:
            self._messages.put_nowait(None)
        except queue.Full:
            pass

        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug(f"Error shutting down client socket {self.addr}: {e}")
        try:
            self.sock.close()
        except OSError as e:
            logger.debug(f"Error closing client socket {self.addr}: {e}")


class ChatServer:
    """
    Accepts chat clients and relays their lines to everyone.

    The first line from a client is its username. Every later line is
    broadcast with a timestamp and the sender's name.
    """

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 8888,
        max_clients: int = 50,
        queue_size: int = 256,
        username_min_length: int = 2,
        username_max_length: int = 32,
    ):
        """
        Initialize chat server.

        Args:
            host: Host to listen on
            port: Port to listen on (0 picks a free port)
            max_clients: Connections accepted at once
            queue_size: Outgoing messages buffered per client
        """
        self.host = host
        self.port = port
        self.max_clients = max_clients
        self.queue_size = queue_size
        self.username_min_length = username_min_length
        self.username_max_length = username_max_length
        self._server_socket: Optional[socket.socket] = None
        self._clients: Dict[ChatClientHandle, bool] = {}
        self._lock = threading.Lock()
        self._running = False
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port), available after start()."""
        return self._server_socket.getsockname()[:2]

    @property
    def client_names(self) -> List[str]:
        with self._lock:
            return [client.name for client in self._clients]

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start listening and accepting clients."""
        self._server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._server_socket.bind((self.host, self.port))
        self._server_socket.listen(10)
        self._server_socket.settimeout(1.0)

        self._running = True
        self._thread = threading.Thread(target=self._accept_loop, daemon=True, name="chat-accept")
        self._thread.start()

        host, port = self.address
        logger.info(f"Chat server listening on {host}:{port}")

    def _accept_loop(self) -> None:
        """Accept incoming connections."""
        while self._running:
            try:
                client_socket, client_addr = self._server_socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Error accepting connection: {e}")
                continue

            logger.info(f"New connection from {client_addr}")
            client_socket.settimeout(None)
            threading.Thread(
                target=self._handle_client,
                args=(client_socket, client_addr),
                daemon=True,
            ).start()

    def _reject(self, sock: socket.socket, reason: str) -> None:
        try:
            sock.sendall((reason + "\n").encode(ENCODING))
        except OSError as e:
            logger.debug(f"Error sending rejection: {e}")
        finally:
            sock.close()

    def _handle_client(self, sock: socket.socket, addr: tuple) -> None:
        """Run the handshake, then relay the client's lines until it leaves."""
        reader = sock.makefile("r", encoding=ENCODING, errors="replace", newline="\n")
        try:
            self._serve_client(sock, addr, reader)
        finally:
            reader.close()

    def _serve_client(self, sock: socket.socket, addr: tuple, reader) -> None:
        try:
            name_line = reader.readline()
        except OSError as e:
            logger.error(f"Error reading username from {addr}: {e}")
            sock.close()
            return

        if not name_line:
            sock.close()
            return

        name = name_line.strip()
        if not self.username_min_length <= len(name) <= self.username_max_length:
            self._reject(
                sock,
                f"Username must be {self.username_min_length}-{self.username_max_length} characters.",
            )
            return

        client = ChatClientHandle(sock, addr, name, queue_size=self.queue_size)
        with self._lock:
            full = len(self._clients) >= self.max_clients
            if not full:
                client.enqueue(welcome_message(name))
                self._clients[client] = True

        if full:
            logger.warning(f"Rejecting {name} from {addr}: server full")
            self._reject(sock, "Server is full. Try again later.")
            return

        client.start_writer()
        self.broadcast(f"*** {name} has joined the chat ***")
        self._send_user_list()

        try:
            self._read_loop(client, reader)
        finally:
            self._unregister(client)

    def _read_loop(self, client: ChatClientHandle, reader) -> None:
        while self._running:
            try:
                line = reader.readline()
            except (OSError, ValueError) as e:
                logger.info(f"Error reading from client {client.name}: {e}")
                return
            if not line:
                return

            message = line.strip()
            if message == EXIT_COMMAND:
                return
            if message:
                timestamp = time.strftime("%H:%M:%S")
                self.broadcast(f"[{timestamp}] {client.name}: {message}")

    def _unregister(self, client: ChatClientHandle) -> None:
        with self._lock:
            registered = self._clients.pop(client, None) is not None
        client.close()

        if registered and self._running:
            self.broadcast(f"*** {client.name} has left the chat ***")
            self._send_user_list()

    def _send_user_list(self) -> None:
        names = self.client_names
        if names:
            self.broadcast(f"*** Online users: {', '.join(names)} ***")

    def broadcast(self, message: str) -> None:
        """Queue a message for every client, dropping clients that cannot keep up."""
        logger.info(message)
        dropped: List[ChatClientHandle] = []
        with self._lock:
            for client in list(self._clients):
                if not client.enqueue(message):
                    del self._clients[client]
                    dropped.append(client)

        for client in dropped:
            logger.warning(f"Dropping slow client {client.name}")
            client.close()

    def serve_forever(self) -> None:
        """Block until stop() is called."""
        try:
            while self._running:
                time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Received interrupt, shutting down...")

    def stop(self) -> None:
        """Stop the server and disconnect every client."""
        if not self._running:
            return
        self._running = False

        if self._server_socket:
            try:
                self._server_socket.close()
            except OSError as e:
                logger.debug(f"Error while closing server socket during stop: {e}")

        with self._lock:
            clients = list(self._clients)
            self._clients.clear()
        for client in clients:
            client.close()

        if self._thread:
            self._thread.join(timeout=2.0)

        logger.info("Chat server stopped")
