"""
Core module for cross-cutting concerns.

This module provides:
- Structured logging configuration
- Request tracing middleware
- Common utilities
"""

from core.logging import bind_context, clear_context, configure_logging, get_logger
from core.utils import clean_str, uniq

__all__ = [
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "clean_str",
    "uniq",
]
