"""
Due-date helpers for the task list pages.

Pure functions of ``(due_date, now)`` that decide how a deadline is
labelled ("Today", "Tomorrow", "Mar 5") and whether it is overdue.  They
are kept out of ``TaskStore`` because the answers depend on the viewer's
clock, not on stored state.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo


def _local(value: datetime, now: datetime) -> datetime:
    """Express *value* in the timezone of *now* (naive values are taken as-is)."""
    if value.tzinfo is None or now.tzinfo is None:
        return value.replace(tzinfo=now.tzinfo)
    return value.astimezone(now.tzinfo)


def is_due_today(due_date: datetime, now: datetime) -> bool:
    return _local(due_date, now).date() == now.date()


def is_due_tomorrow(due_date: datetime, now: datetime) -> bool:
    return _local(due_date, now).date() == now.date() + timedelta(days=1)


def is_overdue(due_date: datetime | None, completed: bool, now: datetime) -> bool:
    """A pending task whose due moment has already passed."""
    if due_date is None or completed:
        return False
    return _local(due_date, now) < now


def has_time_of_day(due_date: datetime, now: datetime | None = None) -> bool:
    """True when the deadline carries a time other than midnight."""
    value = _local(due_date, now) if now is not None else due_date
    return (value.hour, value.minute) != (0, 0)


def due_label(due_date: datetime, now: datetime) -> str:
    """
    Human label for a deadline relative to *now*.

    Returns "Today", "Tomorrow" or an abbreviated month and day such as
    "Mar 5", followed by a 12-hour clock time when one is set
    (e.g. "Tomorrow 3:30 PM").
    """
    local = _local(due_date, now)
    if is_due_today(local, now):
        label = "Today"
    elif is_due_tomorrow(local, now):
        label = "Tomorrow"
    else:
        label = f"{local:%b} {local.day}"

    if has_time_of_day(local):
        hour = local.hour % 12 or 12
        label += f" {hour}:{local.minute:02d} {'AM' if local.hour < 12 else 'PM'}"
    return label


def combine_due(
    date_str: str | None,
    time_str: str | None = None,
    tz: tzinfo = timezone.utc,
) -> datetime | None:
    """
    Build a due timestamp from the add/edit form's date and time inputs.

    Args:
        date_str: ``YYYY-MM-DD``; empty means no deadline.
        time_str: Optional ``HH:MM``; ignored when no date is given.
        tz: Timezone the inputs are expressed in.

    Returns:
        A timezone-aware datetime, or ``None`` when no date was given.

    Raises:
        ValueError: If either input is malformed.
    """
    if not date_str:
        return None
    day = date.fromisoformat(date_str.strip())
    at = time.fromisoformat(time_str.strip()) if time_str and time_str.strip() else time()
    return datetime.combine(day, at.replace(second=0, microsecond=0), tzinfo=tz)
