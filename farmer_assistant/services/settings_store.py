"""
SettingsStore for the farmer profile and the per-device user id.

This module provides a small key-value storage abstraction (the local
persistent store) and the service that reads and writes the two keys the
assistant keeps there: ``farmerAssistantUserId`` and ``farmSettings``.
"""

import json
import logging
import secrets
import string
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from pydantic import ValidationError

from farmer_assistant.core.config import get_settings
from farmer_assistant.models.settings import FarmSettings

logger = logging.getLogger(__name__)

USER_ID_KEY = "farmerAssistantUserId"
FARM_SETTINGS_KEY = "farmSettings"

_USER_ID_ALPHABET = string.ascii_lowercase + string.digits
_USER_ID_LENGTH = 9


class KeyValueStorage(ABC):
    """String-valued persistent storage."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove_item(self, key: str) -> None:
        ...


class InMemoryStorage(KeyValueStorage):
    """Volatile storage, used by tests and ephemeral sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage(KeyValueStorage):
    """
    Storage persisted as a single JSON object on disk.

    A missing or unreadable file behaves like an empty store. Every write
    rewrites the file through a temporary sibling so a crash never leaves a
    half-written document behind.
    """

    def __init__(self, path: Path):
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> Dict[str, str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning(f"Local storage unreadable at {self._path}: {e}")
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Local storage corrupt at {self._path}: {e}")
            return {}

        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp_path.replace(self._path)

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def remove_item(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data)


def generate_user_id() -> str:
    """Random ``user_`` token, 9 lowercase alphanumerics."""
    suffix = "".join(secrets.choice(_USER_ID_ALPHABET) for _ in range(_USER_ID_LENGTH))
    return f"user_{suffix}"


class SettingsStore:
    """
    Reads and writes the farmer profile and the device user id.

    Example:
        >>> store = SettingsStore(InMemoryStorage())
        >>> store.get_farm_settings().crop_type
        'Mosambi'
        >>> store.get_user_id().startswith("user_")
        True
    """

    def __init__(self, storage: KeyValueStorage):
        self._storage = storage

    @property
    def storage(self) -> KeyValueStorage:
        return self._storage

    def get_user_id(self) -> str:
        """
        Return the persisted user id, creating it on first call.

        Returns:
            The stable per-device identifier
        """
        user_id = self._storage.get_item(USER_ID_KEY)
        if not user_id:
            user_id = generate_user_id()
            self._storage.set_item(USER_ID_KEY, user_id)
            logger.info(f"Generated new user id {user_id}")
        return user_id

    def get_farm_settings(self) -> FarmSettings:
        """
        Return the saved farm settings, or defaults.

        Defaults are not persisted; they are only written once the user
        saves. Corrupt stored data is logged and replaced by defaults.
        """
        saved = self._storage.get_item(FARM_SETTINGS_KEY)
        if not saved:
            return FarmSettings()

        try:
            return FarmSettings.model_validate_json(saved)
        except ValidationError as e:
            logger.error(f"Error loading farm settings, using defaults: {e}")
            return FarmSettings()

    def save_farm_settings(self, settings: FarmSettings) -> FarmSettings:
        """Persist settings as JSON. No range or enum validation is applied."""
        self._storage.set_item(FARM_SETTINGS_KEY, settings.model_dump_json(by_alias=True))
        logger.info(f"Farm settings saved for {settings.farmer_name}")
        return settings


# Module-level singleton instance
_settings_store: Optional[SettingsStore] = None


def get_settings_store() -> SettingsStore:
    """
    Get the singleton SettingsStore backed by the configured JSON file.

    Returns:
        SettingsStore instance
    """
    global _settings_store
    if _settings_store is None:
        _settings_store = SettingsStore(JsonFileStorage(get_settings().storage_path))
    return _settings_store


def reset_settings_store() -> None:
    """Drop the singleton (mainly for tests)."""
    global _settings_store
    _settings_store = None
