# dreamlog/security/trial.py
"""
Trial gate.

A user is active while ``now - created <= TRIAL_DAYS``. The boundary is
inclusive: at exactly ``created + TRIAL_DAYS`` the trial is still active.
This is the only rule consulted by dream and completion endpoints and by login.
"""
import math
from typing import Optional

from dreamlog.core import clock
from dreamlog.core.clock import DAY_MS
from dreamlog.schemas.user import UserRecord

DEFAULT_TRIAL_DAYS = 14


def trial_period_ms(trial_days: int = DEFAULT_TRIAL_DAYS) -> int:
    return trial_days * DAY_MS


def trial_ends_at(user: UserRecord, trial_days: int = DEFAULT_TRIAL_DAYS) -> int:
    return user.created + trial_period_ms(trial_days)


def is_active(user: UserRecord, now: Optional[int] = None, trial_days: int = DEFAULT_TRIAL_DAYS) -> bool:
    if now is None:
        now = clock.now_ms()
    return now - user.created <= trial_period_ms(trial_days)


def days_left(user: UserRecord, now: Optional[int] = None, trial_days: int = DEFAULT_TRIAL_DAYS) -> int:
    """Whole days remaining, rounded up, never negative."""
    if now is None:
        now = clock.now_ms()
    ms_left = trial_ends_at(user, trial_days) - now
    return max(0, math.ceil(ms_left / DAY_MS))
