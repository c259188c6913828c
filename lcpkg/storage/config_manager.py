"""
Reads and writes the INI settings file behind `AppConfig`.

Every setting lives in the `DEFAULT` section. Keys added in newer releases
are filled in with their defaults the first time an older file is loaded.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from lcpkg.exceptions import ConfigurationError
from lcpkg.models.config import AppConfig

log = logging.getLogger(__name__)

SECTION = "DEFAULT"

PATH_KEYS = (
    "app_group_dir",
    "documents_dir",
    "private_data_dir",
    "shared_data_dir",
    "export_dir",
    "temp_dir",
)


class ConfigManager:
    """Loads, validates, upgrades and creates the lcpkg settings file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> AppConfig:
        """
        Builds an `AppConfig` from the settings file.

        Args:
            cli_options: Values that take precedence over the file, keyed by
                setting name.

        Raises:
            ConfigurationError: The file does not exist, cannot be parsed, or
                holds values that fail validation.
        """
        if not self.config_file_path.is_file():
            raise ConfigurationError(
                f"No settings file at '{self.config_file_path}'. "
                "Run 'lcpkg init' to create one."
            )

        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Settings file is not valid INI: {e}") from e

        added = self._fill_missing_keys()
        if added:
            log.info(
                f"[yellow]Added {len(added)} new settings to "
                f"'{self.config_file_path.name}': {', '.join(added)}[/yellow]"
            )

        values = self._read_values()
        values.update(cli_options or {})

        try:
            return AppConfig(
                **values, config_path=str(self.config_file_path.parent)
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Writes a complete settings file. Keys missing from `settings` take
        their `AppConfig` defaults; nothing is written if validation fails.
        """
        try:
            config = AppConfig(**settings)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings:\n{e}") from e

        parser = configparser.ConfigParser(interpolation=None)
        parser[SECTION] = {
            key: self._to_ini_value(getattr(config, key))
            for key in AppConfig.get_ini_keys()
        }
        try:
            self._write(parser)
        except OSError as e:
            raise ConfigurationError(
                f"Could not write '{self.config_file_path}': {e}"
            ) from e

    def _write(self, parser: configparser.ConfigParser) -> None:
        self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_file_path, "w", encoding="utf-8") as f:
            parser.write(f)

    @staticmethod
    def _to_ini_value(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def _read_values(self) -> dict[str, Any]:
        section = self._parser[SECTION]
        values: dict[str, Any] = {
            key: section[key] for key in PATH_KEYS if section.get(key)
        }
        if not section.get("temp_dir"):
            values["temp_dir"] = None
        try:
            values["probe_timeout"] = section.getfloat("probe_timeout", 10.0)
            values["max_concurrent_probes"] = section.getint(
                "max_concurrent_probes", 8
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e
        values["exporter_name"] = section.get("exporter_name", "LiveContainer")
        return values

    def _fill_missing_keys(self) -> list[str]:
        """Adds default values for absent keys and returns the keys added."""
        section = self._parser[SECTION]
        defaults = AppConfig()
        added = [key for key in AppConfig.get_ini_keys() if key not in section]
        if not added:
            return added

        for key in added:
            section[key] = self._to_ini_value(getattr(defaults, key))
            log.debug(f"Settings upgrade: {key} = {section[key]!r}")
        try:
            self._write(self._parser)
        except OSError as e:
            log.error(f"Could not save upgraded settings file: {e}")
        return added
