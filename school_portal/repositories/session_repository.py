"""
Login sessions and their idle timers.

- Mongo collection: sessions
- One document per issued access token (keyed by the token's `sid` claim).
- The idle timeout comes from the sessionTimeout setting, so changing it
  applies to sessions that are already open.
"""
from __future__ import annotations

import time
import uuid
from typing import Callable, Optional

from pymongo.database import Database

from school_portal.core.config import CONFIG
from school_portal.repositories.settings_repository import SettingsRepository
from school_portal.services.session_timer import IdleSessionTimer


class SessionRepository:
    def __init__(self, database: Database, clock: Optional[Callable[[], float]] = None):
        self._col = database["sessions"]
        self._settings = SettingsRepository(database)
        self._clock = clock or time.time

    def _timer(self, data: Optional[dict] = None) -> IdleSessionTimer:
        return IdleSessionTimer.from_dict(
            data or {},
            self._settings.get()["sessionTimeout"],
            CONFIG.IDLE_WARNING_COUNTDOWN_SECONDS,
            clock=self._clock,
        )

    def start(self, user_id: str) -> str:
        session_id = uuid.uuid4().hex
        timer = self._timer()
        self._col.insert_one({"_id": session_id, "userId": user_id, **timer.to_dict()})
        return session_id

    def load(self, session_id: str) -> Optional[IdleSessionTimer]:
        doc = self._col.find_one({"_id": session_id})
        if not doc:
            return None
        return self._timer(doc)

    def save(self, session_id: str, timer: IdleSessionTimer) -> None:
        self._col.update_one({"_id": session_id}, {"$set": timer.to_dict()})

    def end(self, session_id: str) -> None:
        timer = self.load(session_id)
        if timer:
            timer.logout()
            self.save(session_id, timer)
