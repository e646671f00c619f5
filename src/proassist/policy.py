"""Summary: Auto-reply eligibility policy.

Importance: Decides whether an incoming message gets an automatic reply right now.
Alternatives: Let users trigger every reply manually.
"""

from __future__ import annotations

import re
from datetime import datetime
from zoneinfo import ZoneInfo

from proassist.models import AutoReplySettings

DAY_LABELS = ["Dom", "Seg", "Ter", "Qua", "Qui", "Sex", "Sáb"]
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def default_settings(message: str) -> AutoReplySettings:
    """Summary: Build the settings a new user starts with.

    Importance: Gives every user an enabled weekday schedule out of the box.
    Alternatives: Start disabled and require explicit configuration.
    """

    return AutoReplySettings(
        enabled=True,
        message=message,
        start_time="08:00",
        end_time="18:00",
        active_days=[1, 2, 3, 4, 5],
    )


def weekday_index(moment: datetime) -> int:
    """Summary: Return the day of week with Sunday as 0 and Saturday as 6.

    Importance: Matches the active_days convention used by clients.
    Alternatives: Use Python's Monday-based weekday numbers.
    """

    return moment.isoweekday() % 7


def is_eligible(settings: AutoReplySettings | None, now: datetime) -> bool:
    """Summary: Check whether an auto-reply may be sent at a local moment.

    Importance: Confines automatic replies to the configured days and hours.
    Alternatives: Reply whenever auto-reply is enabled, ignoring the schedule.

    The window is inclusive on both ends at minute precision.
    """

    if settings is None or not settings.enabled:
        return False
    if weekday_index(now) not in settings.active_days:
        return False
    current = now.strftime("%H:%M")
    return settings.start_time <= current <= settings.end_time


def is_valid_time(value: str) -> bool:
    return bool(TIME_PATTERN.match(value))


def local_now(now: datetime, timezone_name: str = "") -> datetime:
    """Summary: Convert a moment to the configured auto-reply timezone.

    Importance: Evaluates working hours in the user's wall clock, not UTC.
    Alternatives: Store a timezone per user.
    """

    if timezone_name:
        return now.astimezone(ZoneInfo(timezone_name))
    if now.tzinfo is None:
        return now
    return now.astimezone()


def day_labels(active_days: list[int]) -> list[str]:
    return [DAY_LABELS[day] for day in sorted(set(active_days))]
