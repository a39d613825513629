"""Per-session submission state so only one analysis runs at a time."""
from __future__ import annotations

import threading
from enum import Enum
from typing import Dict, Optional

from .errors import InvalidTransition, SubmissionInProgress


class SubmissionState(str, Enum):
    IDLE = 'idle'
    IN_FLIGHT = 'in_flight'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'


_TRANSITIONS = {
    SubmissionState.IDLE: {SubmissionState.IN_FLIGHT},
    SubmissionState.IN_FLIGHT: {SubmissionState.SUCCEEDED, SubmissionState.FAILED},
    SubmissionState.SUCCEEDED: {SubmissionState.IN_FLIGHT},
    SubmissionState.FAILED: {SubmissionState.IN_FLIGHT},
}


class SubmissionTracker:
    """State machine for a single user's submissions."""

    def __init__(self):
        self._state = SubmissionState.IDLE
        self._lock = threading.Lock()
        self.last_error: Optional[str] = None

    @property
    def state(self) -> SubmissionState:
        return self._state

    @property
    def in_flight(self) -> bool:
        return self._state is SubmissionState.IN_FLIGHT

    def _move(self, target: SubmissionState) -> None:
        with self._lock:
            if target not in _TRANSITIONS[self._state]:
                if target is SubmissionState.IN_FLIGHT:
                    raise SubmissionInProgress()
                raise InvalidTransition(current=self._state.value, target=target.value)
            self._state = target

    def begin(self) -> None:
        self._move(SubmissionState.IN_FLIGHT)
        self.last_error = None

    def succeed(self) -> None:
        self._move(SubmissionState.SUCCEEDED)

    def fail(self, message: Optional[str] = None) -> None:
        self._move(SubmissionState.FAILED)
        self.last_error = message


class SubmissionRegistry:
    """Trackers keyed by browser session id."""

    def __init__(self):
        self._trackers: Dict[str, SubmissionTracker] = {}
        self._lock = threading.Lock()

    def tracker_for(self, session_id: str) -> SubmissionTracker:
        with self._lock:
            tracker = self._trackers.get(session_id)
            if tracker is None:
                tracker = SubmissionTracker()
                self._trackers[session_id] = tracker
            return tracker

    def begin(self, session_id: str) -> SubmissionTracker:
        """Start a submission for the session; raises SubmissionInProgress if one is running."""
        with self._lock:
            tracker = self._trackers.setdefault(session_id, SubmissionTracker())
            tracker.begin()
            return tracker

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._trackers.pop(session_id, None)

    def release(self, session_id: str) -> None:
        """Drop the session's tracker once its submission has finished."""
        with self._lock:
            tracker = self._trackers.get(session_id)
            if tracker is not None and not tracker.in_flight:
                del self._trackers[session_id]

    def __len__(self) -> int:
        return len(self._trackers)
