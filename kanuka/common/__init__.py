# Common utilities
from kanuka.common.config import Config as Config
from kanuka.common.logging_utils import setup_logger as setup_logger

__all__ = ["Config", "setup_logger"]
