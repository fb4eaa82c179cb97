"""
Lingua API Package.

FastAPI application exposing translation orchestration over HTTP.
"""

__version__ = "0.1.0"
