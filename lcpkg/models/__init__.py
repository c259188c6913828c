"""
Data Models Layer.

This package contains Pydantic models that define the core data structures
used throughout the application, such as saved links, export metadata and
configuration.
"""

from .config import AppConfig
from .export import ExportDescriptor
from .link import LinkRecord, Reachability
from .progress import ProgressEvent, ProgressReporter

__all__ = [
    "AppConfig",
    "ExportDescriptor",
    "LinkRecord",
    "ProgressEvent",
    "ProgressReporter",
    "Reachability",
]
