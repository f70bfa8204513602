"""Fixed screen text for the chat client."""

from typing import List

APP_NAME = "Terminal Chat"
FAREWELL = "Exited chat. Thanks for using Terminal Chat!"


def title_for(username: str) -> str:
    """Title bar text for the given username."""
    return f"{APP_NAME} - {username} - Type '/quit' to exit, '/help' for commands"


def welcome_lines(username: str) -> List[str]:
    """Lines written to the chat history at startup."""
    return [
        f"=== Welcome to {APP_NAME} ===",
        f"Your username: {username}",
        "Type '/help' for available commands",
        "================================",
        "",
    ]
