"""
Core application engine.

`RefreshCoordinator` keeps saved link status current, `DownloadEngine`
fetches packages behind saved links and `ExportStager` turns an installed
app and its container data into a distributable archive. `create_services`
wires them together once per process.
"""

from .containers import (
    ApplicationDescriptor,
    ContainerPathResolver,
    ContainerRecord,
    StorageGroup,
)
from .download_engine import DownloadEngine
from .export_stager import ExportStager
from .refresh import RefreshCoordinator
from .services import Services, create_services

__all__ = [
    "ApplicationDescriptor",
    "ContainerPathResolver",
    "ContainerRecord",
    "DownloadEngine",
    "ExportStager",
    "RefreshCoordinator",
    "Services",
    "StorageGroup",
    "create_services",
]
