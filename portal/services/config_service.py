"""Configuration service — loads, saves and provides access to the admin config."""
from __future__ import annotations

import json
import logging
import os
from typing import Optional

from pydantic import ValidationError as ModelValidationError

from portal.errors import PersistError
from portal.models.config import AdminConfig, ApiSite, LiveSource, OpenListConfig

logger = logging.getLogger(__name__)


class ConfigService:
    """Manages the single admin configuration record with file persistence.

    The record is kept in-memory, as read from disk, after first load.
    Entries are validated on access, so a malformed site or live source is
    skipped without touching the others, and saves write back every key
    they did not change.  A file that could not be read is never
    overwritten.  Writes are plain read-modify-write with no locking: two
    concurrent saves race and the last one wins.
    """

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        self.config_file = os.path.join(data_dir, "config.json")
        self._config: dict = self._default_config()
        self._load_error: Optional[str] = None

    # ------------------------------------------------------------------
    # Defaults
    # ------------------------------------------------------------------

    @staticmethod
    def _default_config() -> dict:
        return AdminConfig().model_dump()

    # ------------------------------------------------------------------
    # Load / Save
    # ------------------------------------------------------------------

    def load(self) -> dict:
        """Load configuration from disk, filling in missing top-level keys."""
        default = self._default_config()
        self._load_error = None

        if os.path.exists(self.config_file):
            try:
                with open(self.config_file) as f:
                    config = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Error loading config: {e}")
                self._load_error = str(e)
                config = None

            if config is not None and not isinstance(config, dict):
                logger.error("Error loading config: top-level value is not an object")
                self._load_error = "top-level value is not an object"
                config = None

            if config is not None:
                for key in default:
                    if key not in config:
                        config[key] = default[key]
                self._config = config
                return self._config

        self._config = default
        return self._config

    def save(self, config: dict | None = None) -> None:
        """Persist the config to disk; the in-memory copy only changes on success."""
        if self._load_error is not None:
            raise PersistError(f"Refusing to overwrite unreadable config file: {self._load_error}")
        config = self._config if config is None else config
        try:
            os.makedirs(os.path.dirname(self.config_file), exist_ok=True)
            with open(self.config_file, "w") as f:
                json.dump(config, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error(f"Error saving config: {e}")
            raise PersistError(f"Failed to save config: {e}") from e
        self._config = config

    # ------------------------------------------------------------------
    # Convenience accessors
    # ------------------------------------------------------------------

    @staticmethod
    def _valid_entries(entries, model, section: str) -> list:
        valid = []
        for entry in entries or []:
            try:
                valid.append(model.model_validate(entry))
            except ModelValidationError as e:
                logger.warning(f"Skipping invalid {section} entry {entry!r}: {e.error_count()} error(s)")
        return valid

    def get_api_sites(self) -> list[ApiSite]:
        return self._valid_entries(self._config.get("api_sites"), ApiSite, "api_sites")

    def get_enabled_lives(self) -> list[LiveSource]:
        lives = self._valid_entries(self._config.get("live_config"), LiveSource, "live_config")
        return [l for l in lives if not l.disabled]

    def get_live_by_key(self, key: str) -> LiveSource | None:
        for live in self._valid_entries(self._config.get("live_config"), LiveSource, "live_config"):
            if live.key == key:
                return live
        return None

    def get_openlist_config(self) -> OpenListConfig:
        """The stored OpenList settings; raises :class:`PersistError` if they are malformed."""
        try:
            return OpenListConfig.model_validate(self._config.get("openlist_config") or {})
        except ModelValidationError as e:
            logger.error(f"Stored openlist_config is invalid: {e}")
            raise PersistError("Stored OpenList config is invalid") from e

    def save_openlist_config(self, openlist: OpenListConfig) -> None:
        config = dict(self._config)
        config["openlist_config"] = openlist.model_dump()
        self.save(config)
