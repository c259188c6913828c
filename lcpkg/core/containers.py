"""
Describes installed applications and resolves where their container data lives.
"""

import logging
import plistlib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

log = logging.getLogger(__name__)


class StorageGroup(str, Enum):
    PRIVATE = "private"
    SHARED = "shared"


@dataclass(frozen=True)
class ContainerRecord:
    """One data container of an installed app."""

    data_uuid: str
    name: str = ""
    storage_group: StorageGroup = StorageGroup.PRIVATE


@dataclass
class ApplicationDescriptor:
    """The identity of an installed app and the location of its bundle."""

    bundle_path: Path
    bundle_identifier: str = ""
    display_name: str = ""
    version: str = ""
    containers: list[ContainerRecord] = field(default_factory=list)

    @property
    def bundle_name(self) -> str:
        return self.bundle_path.name

    @classmethod
    def from_bundle(cls, bundle_path: Path) -> "ApplicationDescriptor":
        """
        Builds a descriptor from a bundle's Info.plist. A missing or unreadable
        plist yields a descriptor named after the bundle directory.
        """
        info: dict = {}
        plist_path = bundle_path / "Info.plist"
        try:
            with open(plist_path, "rb") as f:
                info = plistlib.load(f)
        except FileNotFoundError:
            log.debug(f"No Info.plist in '{bundle_path}'")
        except (OSError, plistlib.InvalidFileException) as e:
            log.warning(f"Could not read '{plist_path}': {e}")

        group = StorageGroup.SHARED if info.get("isShared") else StorageGroup.PRIVATE
        containers = [
            ContainerRecord(
                data_uuid=str(entry["DataUUID"]),
                name=str(entry.get("name", "")),
                storage_group=group,
            )
            for entry in info.get("LCContainers", [])
            if isinstance(entry, dict) and entry.get("DataUUID")
        ]
        return cls(
            bundle_path=bundle_path,
            bundle_identifier=str(info.get("CFBundleIdentifier", "")),
            display_name=str(
                info.get("CFBundleDisplayName")
                or info.get("CFBundleName")
                or bundle_path.stem
            ),
            version=str(
                info.get("CFBundleShortVersionString")
                or info.get("CFBundleVersion", "")
            ),
            containers=containers,
        )

    def find_container(self, data_uuid: str) -> ContainerRecord | None:
        return next((c for c in self.containers if c.data_uuid == data_uuid), None)


class ContainerPathResolver:
    """Maps a container to its folder under the shared or private data root."""

    def __init__(self, private_root: Path, shared_root: Path):
        self.private_root = private_root
        self.shared_root = shared_root

    def root_for(self, group: StorageGroup) -> Path:
        return self.shared_root if group is StorageGroup.SHARED else self.private_root

    def resolve(self, container: ContainerRecord) -> Path:
        return self.root_for(container.storage_group) / container.data_uuid
