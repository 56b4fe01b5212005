# Utilities
from .logger import setup_logging, get_logger, OracleLogger

__all__ = ["setup_logging", "get_logger", "OracleLogger"]
