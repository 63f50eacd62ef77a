# school_portal/services/session_timer.py
"""
Idle-session state machine.

    ACTIVE --(idle for idle_minutes)--> WARNING
    WARNING --(extend)--> ACTIVE
    WARNING --(countdown elapses)--> LOGGED_OUT

LOGGED_OUT is terminal. The timer never schedules anything itself: callers
drive it with `tick()` whenever they look at it, so it can be stored between
HTTP requests as a plain dict.
"""
from __future__ import annotations

import time
from enum import Enum
from typing import Callable, Dict, Optional


class SessionState(str, Enum):
    ACTIVE = "active"
    WARNING = "warning"
    LOGGED_OUT = "logged_out"


class IdleSessionTimer:
    def __init__(
        self,
        idle_minutes: float,
        countdown_seconds: float,
        clock: Callable[[], float] = time.time,
        last_activity: Optional[float] = None,
        state: SessionState = SessionState.ACTIVE,
        warned_at: Optional[float] = None,
    ):
        if idle_minutes <= 0 or countdown_seconds <= 0:
            raise ValueError("idle_minutes and countdown_seconds must be positive")
        self.idle_seconds = idle_minutes * 60
        self.countdown_seconds = countdown_seconds
        self._clock = clock
        self.last_activity = clock() if last_activity is None else last_activity
        self.state = SessionState(state)
        self.warned_at = warned_at

    def tick(self) -> SessionState:
        now = self._clock()
        if self.state == SessionState.ACTIVE and now - self.last_activity >= self.idle_seconds:
            self.state = SessionState.WARNING
            # the warning started when the idle period ran out, not when we noticed
            self.warned_at = self.last_activity + self.idle_seconds
        if self.state == SessionState.WARNING and now - self.warned_at >= self.countdown_seconds:
            self.state = SessionState.LOGGED_OUT
        return self.state

    def touch(self) -> SessionState:
        """User activity. Only resets the idle clock while ACTIVE."""
        if self.tick() == SessionState.ACTIVE:
            self.last_activity = self._clock()
        return self.state

    def extend(self) -> SessionState:
        """The 'stay signed in' action from the warning dialog."""
        if self.tick() in (SessionState.ACTIVE, SessionState.WARNING):
            self.state = SessionState.ACTIVE
            self.last_activity = self._clock()
            self.warned_at = None
        return self.state

    def logout(self) -> SessionState:
        self.state = SessionState.LOGGED_OUT
        return self.state

    def seconds_remaining(self) -> float:
        """Seconds until the next transition (warning or logout); 0 once logged out."""
        state = self.tick()
        now = self._clock()
        if state == SessionState.ACTIVE:
            return max(0.0, self.last_activity + self.idle_seconds - now)
        if state == SessionState.WARNING:
            return max(0.0, self.warned_at + self.countdown_seconds - now)
        return 0.0

    def to_dict(self) -> Dict:
        return {
            "state": self.state.value,
            "lastActivity": self.last_activity,
            "warnedAt": self.warned_at,
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict,
        idle_minutes: float,
        countdown_seconds: float,
        clock: Callable[[], float] = time.time,
    ) -> "IdleSessionTimer":
        return cls(
            idle_minutes,
            countdown_seconds,
            clock=clock,
            last_activity=data.get("lastActivity"),
            state=SessionState(data.get("state", SessionState.ACTIVE.value)),
            warned_at=data.get("warnedAt"),
        )
