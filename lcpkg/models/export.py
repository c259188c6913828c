"""
Pydantic model for the metadata sidecar written into every exported archive.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .link import utc_now

DESCRIPTOR_FILENAME = "LCExportMetadata.json"


class ExportDescriptor(BaseModel):
    """
    Records where an export came from and which container data categories were
    requested. Import tooling reads it back from the archive root, so the JSON
    keys are camelCase and must stay stable.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    export_date: datetime = Field(default_factory=utc_now)
    exported_by: str
    bundle_identifier: str = ""
    app_name: str = ""
    app_version: str = ""
    container_included: bool = False
    documents_included: bool = False
    library_included: bool = False
    caches_included: bool = False

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)
