"""
lcpkg: saved package links, downloads and container exports for LiveContainer.
"""

__version__ = "0.3.0"
