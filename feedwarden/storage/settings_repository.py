"""
Settings Repository
===================

JSON key/value store backed by the ``system_settings`` table. The
operator-facing configuration lives under the ``config`` key.
"""

import json
import sqlite3
from typing import Any, Dict, Optional

from ..database.connection import DatabaseConnection
from ..database.models import SystemConfig, format_timestamp, utc_now
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ValidationError, ErrorCode

CONFIG_KEY = "config"


class SettingsRepository:
    """Repository for persisted system settings."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("settings_repository")

    def get_value(self, key: str) -> Optional[Any]:
        """Decoded JSON value for ``key``, or None."""
        try:
            row = self.db.execute_one(
                "SELECT value FROM system_settings WHERE key = ?", (key,)
            )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to read setting {key}: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e

        if not row:
            return None
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            self.logger.warning(f"Setting {key} holds invalid JSON, ignoring it")
            return None

    def set_value(self, key: str, value: Any) -> None:
        """Upsert a JSON value."""
        try:
            self.db.execute_update(
                """
                INSERT INTO system_settings (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
                (key, json.dumps(value, ensure_ascii=False), format_timestamp(utc_now())),
            )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to write setting {key}: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def get_config(self) -> SystemConfig:
        """Stored configuration merged over defaults."""
        stored = self.get_value(CONFIG_KEY)
        if not isinstance(stored, dict):
            return SystemConfig()
        return SystemConfig(**stored)

    def update_config(self, updates: Dict[str, Any]) -> SystemConfig:
        """Merge ``updates`` into the stored configuration.

        Raises:
            ValidationError: If the merged configuration is invalid
        """
        merged = {**self.get_config().model_dump(), **updates}
        try:
            config = SystemConfig(**merged)
        except ValueError as e:
            raise ValidationError(str(e), field_name=CONFIG_KEY) from e

        self.set_value(CONFIG_KEY, config.model_dump())
        self.logger.info(f"Updated system config: {sorted(updates)}")
        return config
