"""Network transport for Terminal Chat."""

from transport.line_connection import (
    ConnectError,
    ConnectErrorReason,
    LineConnection,
    ReceiveError,
    ReceiveErrorReason,
    SendError,
    SendErrorReason,
    TransportError,
)

__all__ = [
    "ConnectError",
    "ConnectErrorReason",
    "LineConnection",
    "ReceiveError",
    "ReceiveErrorReason",
    "SendError",
    "SendErrorReason",
    "TransportError",
]
