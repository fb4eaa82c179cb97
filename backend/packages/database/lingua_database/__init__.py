"""
Lingua Database Package.

SQLAlchemy models and async session management for translation jobs.
"""

from .models.base import Base

__all__ = ["Base"]
