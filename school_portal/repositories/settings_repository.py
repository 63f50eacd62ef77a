"""
System-wide settings.

- Mongo collection: settings
- A single document with _id "system". Keys missing from the stored document
  fall back to the defaults below, so older databases pick up new settings.
"""
from datetime import datetime, timezone

from pymongo.database import Database

from school_portal.core.config import CONFIG
from school_portal.core.permissions import DEFAULT_ROLE_NAME

SETTINGS_ID = "system"


def default_settings() -> dict:
    return {
        "siteName": "School Portal",
        "siteDescription": "",
        "maintenanceMode": False,
        "allowRegistration": True,
        "defaultUserRole": DEFAULT_ROLE_NAME,
        "sessionTimeout": CONFIG.IDLE_TIMEOUT_MINUTES,
        "passwordMinLength": 8,
        "passwordRequireUppercase": False,
        "passwordRequireLowercase": False,
        "passwordRequireNumbers": False,
        "passwordRequireSpecialChars": False,
        "updatedAt": None,
    }


class SettingsRepository:
    def __init__(self, database: Database):
        self._col = database["settings"]

    def seed(self) -> None:
        self._col.update_one({"_id": SETTINGS_ID}, {"$setOnInsert": default_settings()}, upsert=True)

    def get(self) -> dict:
        settings = default_settings()
        doc = self._col.find_one({"_id": SETTINGS_ID}) or {}
        settings.update({k: v for k, v in doc.items() if k != "_id"})
        return settings

    def update(self, changes: dict) -> dict:
        changes = dict(changes, updatedAt=datetime.now(timezone.utc))
        self._col.update_one({"_id": SETTINGS_ID}, {"$set": changes}, upsert=True)
        return self.get()
