"""Server module for Terminal Chat."""

from server.chat_server import ChatServer

__all__ = ["ChatServer"]
