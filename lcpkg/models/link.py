"""
Pydantic model for a saved package link and its probe status.
"""

import base64
from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_serializer, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Reachability(str, Enum):
    """Result of the most recent probe. UNKNOWN means the link was never probed."""

    UNKNOWN = "unknown"
    REACHABLE = "reachable"
    UNREACHABLE = "unreachable"


class LinkRecord(BaseModel):
    """A remote package URL saved by the user, with its last known status."""

    id: UUID = Field(default_factory=uuid4, frozen=True)
    url: str
    display_name: str = ""
    created_at: datetime = Field(default_factory=utc_now, frozen=True)

    # Probe results
    reachability: Reachability = Reachability.UNKNOWN
    size_bytes: int | None = None
    last_probed_at: datetime | None = None

    # Written by the installer after a successful install
    installed_package_id: str | None = None
    installed_icon_blob: bytes | None = None

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("size_bytes")
    @classmethod
    def validate_size(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError("size_bytes cannot be negative.")
        return v

    @field_validator("installed_icon_blob", mode="before")
    @classmethod
    def decode_icon(cls, v):
        """Icons are persisted as base64 text."""
        if isinstance(v, str):
            return base64.b64decode(v)
        return v

    @field_serializer("installed_icon_blob")
    def encode_icon(self, v: bytes | None, _info):
        if v is None or not _info.mode_is_json():
            return v
        return base64.b64encode(v).decode("ascii")

    @property
    def short_id(self) -> str:
        return str(self.id)[:8]

    @property
    def is_reachable(self) -> bool | None:
        """Tri-state view of `reachability` for callers that want a boolean."""
        if self.reachability is Reachability.UNKNOWN:
            return None
        return self.reachability is Reachability.REACHABLE
