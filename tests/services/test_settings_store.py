"""
Unit tests for SettingsStore and the key-value storage backends.

Tests cover user id generation, settings defaults, persistence round trips
and corrupt storage handling.
"""

import json
import re
from datetime import date

import pytest

from farmer_assistant.models.settings import FarmSettings
from farmer_assistant.services.settings_store import (
    FARM_SETTINGS_KEY,
    USER_ID_KEY,
    InMemoryStorage,
    JsonFileStorage,
    SettingsStore,
    generate_user_id,
)


@pytest.fixture
def store():
    return SettingsStore(InMemoryStorage())


class TestUserId:
    def test_generated_id_format(self):
        assert re.fullmatch(r"user_[a-z0-9]{9}", generate_user_id())

    def test_user_id_is_created_once_and_persisted(self, store):
        first = store.get_user_id()
        second = store.get_user_id()

        assert first == second
        assert store.storage.get_item(USER_ID_KEY) == first

    def test_existing_user_id_is_returned(self):
        store = SettingsStore(InMemoryStorage({USER_ID_KEY: "user_abc123xyz"}))
        assert store.get_user_id() == "user_abc123xyz"


class TestFarmSettings:
    def test_defaults_when_nothing_saved(self, store):
        settings = store.get_farm_settings()

        assert settings.crop_type == "Mosambi"
        assert settings.acreage == 15
        assert settings.sowing_date == date(2022, 1, 1)
        assert settings.current_stage == "Fruit Development"
        assert settings.farmer_name == "Vijender"
        assert settings.soil_type == "A"
        assert settings.current_challenges == "Currently there are no challenges."
        assert settings.preferred_languages == ["English", "Telugu"]

    def test_defaults_are_not_persisted(self, store):
        store.get_farm_settings()
        assert store.storage.get_item(FARM_SETTINGS_KEY) is None

    def test_save_then_load_round_trip(self, store):
        saved = FarmSettings(
            crop_type="Mango",
            acreage=3.5,
            sowing_date=date(2023, 6, 15),
            current_stage="Flowering",
            farmer_name="Lakshmi",
            soil_type="C",
            current_challenges="Powdery mildew on young leaves",
            preferred_languages=["Telugu", "Hindi"],
        )
        store.save_farm_settings(saved)

        assert store.get_farm_settings() == saved

    def test_saved_json_uses_camel_case_keys(self, store):
        store.save_farm_settings(FarmSettings(crop_type="Mango"))

        raw = json.loads(store.storage.get_item(FARM_SETTINGS_KEY))
        assert raw["cropType"] == "Mango"
        assert raw["sowingDate"] == "2022-01-01"
        assert "crop_type" not in raw

    def test_unconstrained_values_are_accepted(self, store):
        settings = FarmSettings(soil_type="Z", current_stage="Anything goes")
        store.save_farm_settings(settings)
        assert store.get_farm_settings().soil_type == "Z"

    def test_corrupt_settings_fall_back_to_defaults(self):
        store = SettingsStore(InMemoryStorage({FARM_SETTINGS_KEY: "{not json"}))
        assert store.get_farm_settings() == FarmSettings()

    def test_wrong_types_fall_back_to_defaults(self):
        store = SettingsStore(InMemoryStorage({FARM_SETTINGS_KEY: '{"acreage": "lots"}'}))
        assert store.get_farm_settings() == FarmSettings()


class TestJsonFileStorage:
    def test_missing_file_reads_as_empty(self, tmp_path):
        storage = JsonFileStorage(tmp_path / "missing.json")
        assert storage.get_item("anything") is None

    def test_values_survive_a_new_instance(self, tmp_path):
        path = tmp_path / "nested" / "storage.json"
        JsonFileStorage(path).set_item("key", "value")

        assert JsonFileStorage(path).get_item("key") == "value"

    def test_remove_item(self, tmp_path):
        storage = JsonFileStorage(tmp_path / "storage.json")
        storage.set_item("key", "value")
        storage.remove_item("key")

        assert storage.get_item("key") is None

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "storage.json"
        path.write_text("[[[", encoding="utf-8")

        storage = JsonFileStorage(path)
        assert storage.get_item("key") is None
        storage.set_item("key", "value")
        assert storage.get_item("key") == "value"

    def test_settings_store_over_file_storage(self, tmp_path):
        path = tmp_path / "storage.json"
        user_id = SettingsStore(JsonFileStorage(path)).get_user_id()

        assert SettingsStore(JsonFileStorage(path)).get_user_id() == user_id
