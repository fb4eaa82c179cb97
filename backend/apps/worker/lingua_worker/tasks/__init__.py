"""
Task modules for background processing.

This package contains the coordinator and per-language translation tasks.
"""

from . import coordinator, translation

__all__ = ["coordinator", "translation"]
