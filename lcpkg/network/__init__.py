"""
Network Layer.

This package owns the shared HTTP session and the HEAD-based link prober.
"""

from .prober import LinkProber
from .session import HttpSessionPool

__all__ = ["HttpSessionPool", "LinkProber"]
