"""Common utilities for Terminal Chat."""

from common.config import Config
from common.logging_setup import setup_logging, get_logger

__all__ = ["Config", "setup_logging", "get_logger"]
