# brainstorm_bot/intervention/manual_control.py
"""
Per-user activity levels set through chat commands ("be quiet", "speak up").

Levels gate proactive interventions and shift the user's intervention
frequency up or down one step.
"""

from __future__ import annotations

import logging
import random
from collections import defaultdict, deque
from datetime import datetime, timedelta
from typing import Callable, Deque, Dict, Optional

from ..models import (
    ActivityLevel,
    ActivityLevelChange,
    InterventionFrequency,
    UserPreferences,
    utcnow,
)

logger = logging.getLogger(__name__)

MAX_HISTORY_PER_USER = 50

_FREQUENCY_ORDER = [
    InterventionFrequency.MINIMAL,
    InterventionFrequency.MODERATE,
    InterventionFrequency.ACTIVE,
    InterventionFrequency.VERY_ACTIVE,
]


def _shift_frequency(frequency: InterventionFrequency, steps: int) -> InterventionFrequency:
    index = _FREQUENCY_ORDER.index(frequency) + steps
    return _FREQUENCY_ORDER[max(0, min(len(_FREQUENCY_ORDER) - 1, index))]


class ManualControlManager:
    """Tracks activity levels per user with a bounded change history."""

    def __init__(
        self,
        default_level: ActivityLevel = ActivityLevel.NORMAL,
        rng: Callable[[], float] = random.random,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.default_level = default_level
        self._rng = rng
        self._clock = clock or utcnow
        self._levels: Dict[str, ActivityLevel] = {}
        self._history: Dict[str, Deque[ActivityLevelChange]] = defaultdict(
            lambda: deque(maxlen=MAX_HISTORY_PER_USER)
        )

    def set_activity_level(self, user_id: str, level: ActivityLevel, reason: str = "Manual control") -> ActivityLevelChange:
        change = ActivityLevelChange(
            user_id=user_id,
            previous_level=self.get_activity_level(user_id),
            new_level=level,
            timestamp=self._clock(),
            reason=reason,
        )
        self._levels[user_id] = level
        self._history[user_id].append(change)
        logger.info("Activity level for %s: %s -> %s (%s)", user_id, change.previous_level.value, level.value, reason)
        return change

    def get_activity_level(self, user_id: str) -> ActivityLevel:
        return self._levels.get(user_id, self.default_level)

    def get_activity_history(self, user_id: str) -> list[ActivityLevelChange]:
        if user_id not in self._history:
            return []
        return list(self._history[user_id])

    def reset_activity_level(self, user_id: str) -> ActivityLevelChange:
        return self.set_activity_level(user_id, ActivityLevel.NORMAL, "Reset to normal")

    def should_allow_intervention(self, user_id: str, base_decision: bool) -> bool:
        """
        Apply the user's activity level to a proposed intervention.

        Quiet users only see a fraction of the interventions the engine wants;
        active users occasionally get one the engine would have skipped.
        """
        level = self.get_activity_level(user_id)
        if level == ActivityLevel.SILENT:
            return False
        if level == ActivityLevel.QUIET:
            return base_decision and self._rng() > 0.7
        if level == ActivityLevel.ACTIVE:
            return base_decision or self._rng() < 0.3
        return base_decision

    def adjust_intervention_frequency(self, user_id: str, preferences: UserPreferences) -> InterventionFrequency:
        level = self.get_activity_level(user_id)
        base = preferences.intervention_frequency
        if level == ActivityLevel.SILENT:
            return InterventionFrequency.MINIMAL
        if level == ActivityLevel.QUIET:
            return _shift_frequency(base, -1)
        if level == ActivityLevel.ACTIVE:
            return _shift_frequency(base, 1)
        return base

    def get_users_with_modified_activity(self) -> dict[str, ActivityLevel]:
        return {user: level for user, level in self._levels.items() if level != ActivityLevel.NORMAL}

    def has_recent_activity_change(self, user_id: str, within_minutes: float = 5) -> bool:
        history = self._history.get(user_id)
        if not history:
            return False
        return self._clock() - history[-1].timestamp <= timedelta(minutes=within_minutes)
