"""Chat server daemon for Terminal Chat."""

import argparse
import signal
import sys

from common.config import Config
from common.logging_setup import setup_logging, get_logger
from server.chat_server import ChatServer

logger = get_logger(__name__)


def parse_listen(value: str, default_host: str = "0.0.0.0"):
    """Parse a host:port or bare port listen address."""
    if ":" in value:
        host, port_str = value.rsplit(":", 1)
        return host or default_host, int(port_str)
    return default_host, int(value)


def main(argv=None) -> None:
    """Main entry point for chat-server."""
    parser = argparse.ArgumentParser(
        description="Terminal Chat - Server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--listen",
        default=f"{Config.listen_host}:{Config.listen_port}",
        help="Address to listen on (host:port)",
    )

    parser.add_argument(
        "--max-clients",
        type=int,
        default=Config.max_clients,
        help="Maximum number of connected clients",
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )

    parser.add_argument(
        "--log-file",
        help="Log file path (optional)",
    )

    args = parser.parse_args(argv)

    try:
        listen_host, listen_port = parse_listen(args.listen)
    except ValueError:
        print(f"Invalid listen address: {args.listen}")
        sys.exit(1)

    setup_logging(level=args.log_level, log_file=args.log_file)

    config = Config(
        listen_host=listen_host,
        listen_port=listen_port,
        max_clients=args.max_clients,
        log_level=args.log_level,
        log_file=args.log_file,
    )

    server = ChatServer(
        host=config.listen_host,
        port=config.listen_port,
        max_clients=config.max_clients,
        queue_size=config.client_queue_size,
        username_min_length=config.username_min_length,
        username_max_length=config.username_max_length,
    )

    def signal_handler(sig, frame):
        server.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        server.start()
        server.serve_forever()
    except Exception as e:
        logger.error(f"Chat server error: {e}")
        server.stop()
        sys.exit(1)


if __name__ == "__main__":
    main()
