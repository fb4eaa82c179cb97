"""
Lingua Worker Package.

arq workers for the coordinator queue and the per-language translation queue.
"""

__version__ = "0.1.0"
