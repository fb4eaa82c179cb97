"""
Lingua Core Package.

This package contains the translation job orchestration logic, service
classes, and shared schemas for the Lingua application.
"""

__version__ = "0.1.0"

from .logging_config import init_logging, get_logger

__all__ = ["init_logging", "get_logger"]
