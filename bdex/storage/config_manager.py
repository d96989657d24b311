"""
Manages loading and validation of the optional INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from bdex.exceptions import ConfigurationError
from bdex.models.config import RunConfig

log = logging.getLogger(__name__)


class ConfigManager:
    """
    Handles all operations related to the application's INI config file.

    Unlike credentials-driven tools, bdex runs fine without a config file;
    the file only replaces built-in defaults.
    """

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any]) -> RunConfig:
        """
        Loads defaults from the INI file, applies CLI overrides, and validates them.

        Args:
            cli_options: Options provided via the command line. Must include
                'identifier'.

        Returns:
            A validated RunConfig object.

        Raises:
            ConfigurationError: If the config file is unreadable or validation fails.
        """
        config_from_file = self.read_file_settings()
        config_from_file.update(cli_options)

        try:
            return RunConfig(
                **config_from_file, config_path=str(self.config_file_path.parent)
            )
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def read_file_settings(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file, or nothing if it is absent."""
        if not self.config_file_path.is_file():
            log.debug(f"No config file at '{self.config_file_path}', using defaults.")
            return {}

        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e

        return self._get_config_as_dict()

    def _get_config_as_dict(self) -> dict[str, Any]:
        section = self._parser["DEFAULT"]
        known = RunConfig.get_ini_keys()
        for key in section:
            if key not in known:
                log.warning(f"[yellow]Ignoring unknown config key '{key}'.[/yellow]")

        settings: dict[str, Any] = {}
        try:
            if "max_workers" in section:
                settings["max_workers"] = section.getint("max_workers")
            if "retry_times" in section:
                settings["retry_times"] = section.getint("retry_times")
            if "stall_timeout" in section:
                settings["stall_timeout"] = section.getfloat("stall_timeout")
            for flag in ("skip_hash", "keep_files", "verify_blocks", "verify_output"):
                if flag in section:
                    settings[flag] = section.getboolean(flag)
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e

        if "manifest_url_template" in section:
            settings["manifest_url_template"] = section.get("manifest_url_template")
        if "mirror_hosts" in section:
            settings["mirror_hosts"] = section.get("mirror_hosts")
        return settings
