"""
API routers.
"""

from . import templates, translations

__all__ = ["templates", "translations"]
