"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

DOWNLOADS_FOLDER = "DownloadedIPAs"


def default_data_root() -> Path:
    return Path("~/.local/share/lcpkg").expanduser()


class AppConfig(BaseModel):
    """A validated configuration model for the application."""

    # Storage locations
    app_group_dir: Path = Field(
        default_factory=lambda: default_data_root() / "AppGroup"
    )
    documents_dir: Path = Field(
        default_factory=lambda: default_data_root() / "Documents"
    )
    private_data_dir: Path = Field(
        default_factory=lambda: default_data_root() / "Data" / "Application"
    )
    shared_data_dir: Path = Field(
        default_factory=lambda: (
            default_data_root() / "AppGroup" / "Data" / "Application"
        )
    )
    export_dir: Path = Field(default_factory=lambda: default_data_root() / "Exports")
    temp_dir: Path | None = None

    # Export settings
    exporter_name: str = "LiveContainer"

    # Network settings
    probe_timeout: float = 10.0
    max_concurrent_probes: int = 8

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator(
        "app_group_dir",
        "documents_dir",
        "private_data_dir",
        "shared_data_dir",
        "export_dir",
        "temp_dir",
        mode="before",
    )
    @classmethod
    def expand_paths(cls, v):
        if v is None or v == "":
            return None
        return Path(v).expanduser()

    @field_validator("probe_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0 or v > 120:
            raise ValueError("Probe timeout must be between 0 and 120 seconds.")
        return v

    @field_validator("max_concurrent_probes")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        """Ensures a reasonable number of concurrent probes."""
        if v < 1 or v > 64:
            raise ValueError("Max concurrent probes must be between 1 and 64.")
        return v

    @field_validator("exporter_name")
    @classmethod
    def validate_exporter(cls, v: str) -> str:
        if not v:
            raise ValueError("Exporter name cannot be empty.")
        return v

    @model_validator(mode="after")
    def validate_dir_conflicts(self) -> "AppConfig":
        """Checks for storage locations that would overwrite each other."""
        if self.export_dir == self.downloads_dir:
            raise ValueError("Export directory cannot be the downloads folder.")
        if self.private_data_dir == self.shared_data_dir:
            raise ValueError("Private and shared data directories must differ.")
        return self

    @property
    def downloads_dir(self) -> Path:
        return self.documents_dir / DOWNLOADS_FOLDER

    @classmethod
    def get_ini_keys(cls) -> list[str]:
        """Returns all keys that are expected in the INI file, in declaration order."""
        internal_fields = {"config_path"}
        return [key for key in cls.model_fields if key not in internal_fields]
