"""Configuration management for Terminal Chat."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Config:
    """Configuration settings for the Terminal Chat client and server."""

    # Server endpoint the client connects to
    host: str = "127.0.0.1"
    port: int = 8888

    # Minimum terminal size (rows x columns) for the chat screen
    min_rows: int = 10
    min_cols: int = 40

    # Username rules, shared with the server handshake
    username_min_length: int = 2
    username_max_length: int = 32

    # Longest line the input box accepts
    max_input_length: int = 200

    # Bytes requested per socket read
    recv_buffer_size: int = 4096

    # Line sent to the server on orderly shutdown
    disconnect_notice: str = "exit"

    # Chat history bound (None keeps every line)
    max_history: Optional[int] = None

    # Local echo mode without a server connection
    offline: bool = False

    # Server settings
    listen_host: str = "0.0.0.0"
    listen_port: int = 8888
    max_clients: int = 50
    client_queue_size: int = 256

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None


# Default configuration instance
default_config = Config()
