"""
Storage Layer.

This package handles all data persistence: the app-group key-value store,
the saved link list, the downloaded package folder and the configuration file.
"""

from .config_manager import ConfigManager
from .kv_store import AppGroupStore
from .library import DownloadedPackage, PackageLibrary
from .link_store import PackageFileStore

__all__ = [
    "AppGroupStore",
    "ConfigManager",
    "DownloadedPackage",
    "PackageFileStore",
    "PackageLibrary",
]
