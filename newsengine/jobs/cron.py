"""
Cron schedules: validation, next run time and human descriptions.

Expressions are standard five-field crontab strings
(minute hour day-of-month month day-of-week) where day-of-week 0 and 7
are Sunday. They are evaluated with APScheduler's CronTrigger, whose
numeric weekdays start at Monday, so numeric day-of-week fields are
translated to day names first.
"""

from datetime import datetime, timedelta, tzinfo

from apscheduler.triggers.cron import CronTrigger

from ..exceptions import InvalidCronExpressionError

REFRESH_SCHEDULES = {
    "EVERY_15_MINUTES": "*/15 * * * *",
    "EVERY_30_MINUTES": "*/30 * * * *",
    "EVERY_HOUR": "0 * * * *",
    "EVERY_2_HOURS": "0 */2 * * *",
    "EVERY_6_HOURS": "0 */6 * * *",
    "DAILY": "0 0 * * *",
}

_COMMON_DESCRIPTIONS = {
    "*/30 * * * *": "Every 30 minutes",
    "*/15 * * * *": "Every 15 minutes",
    "0 * * * *": "Every hour",
    "0 */2 * * *": "Every 2 hours",
    "0 */6 * * *": "Every 6 hours",
    "0 3 * * *": "Daily at 3:00 AM",
    "0 0 * * *": "Daily at midnight",
    "0 0 * * 0": "Weekly on Sunday at midnight",
}

_DOW_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat", "sun"]
_WEEKDAYS = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
_MONTHS = ["", "January", "February", "March", "April", "May", "June",
           "July", "August", "September", "October", "November", "December"]


def _convert_day_of_week(field: str) -> str:
    """Translate crontab weekday numbers (0/7 = Sunday) to day names."""
    if field in ("*", "?"):
        return "*"

    days: list[str] = []
    for token in field.split(","):
        base, _, step = token.partition("/")
        if base == "*":
            start, end = 0, 6
        elif "-" in base:
            low, high = base.split("-", 1)
            if not (low.isdigit() and high.isdigit()):
                days.append(token.lower())  # Named range, e.g. mon-fri
                continue
            start, end = int(low), int(high)
        elif base.isdigit():
            start = int(base)
            end = 6 if step else start
        else:
            days.append(token.lower())
            continue

        if not (0 <= start <= 7 and 0 <= end <= 7) or start > end:
            raise ValueError(f"Invalid day-of-week value: {token}")
        if step and not step.isdigit():
            raise ValueError(f"Invalid step: {token}")
        stride = int(step) if step else 1
        if stride < 1:
            raise ValueError(f"Invalid step: {token}")

        days.extend(_DOW_NAMES[day] for day in range(start, end + 1, stride))

    return ",".join(dict.fromkeys(days))


def build_trigger(expression: str, timezone: tzinfo | str | None = None) -> CronTrigger:
    """
    Build an APScheduler trigger from a five-field expression.

    Raises:
        InvalidCronExpressionError: If the expression cannot be parsed
    """
    fields = expression.split() if isinstance(expression, str) else []
    if len(fields) != 5:
        raise InvalidCronExpressionError(expression, "expected 5 fields")

    minute, hour, day, month, day_of_week = fields
    try:
        return CronTrigger(
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=_convert_day_of_week(day_of_week),
            timezone=timezone,
        )
    except ValueError as e:
        raise InvalidCronExpressionError(expression, str(e)) from e


def validate_cron_expression(expression: str) -> bool:
    try:
        build_trigger(expression)
    except InvalidCronExpressionError:
        return False
    return True


def next_run_time(expression: str, after: datetime | None = None) -> datetime | None:
    """
    First time strictly after `after` (default now) matching the expression.

    Naive input is treated as local time and a naive local time is returned;
    aware input gets an aware result in the same zone. Returns None for an
    invalid expression or one that never fires.
    """
    after = after or datetime.now()
    aware = after if after.tzinfo else after.astimezone()

    try:
        trigger = build_trigger(expression, timezone=aware.tzinfo)
    except InvalidCronExpressionError:
        return None

    fire_time = trigger.get_next_fire_time(None, aware + timedelta(microseconds=1))
    if fire_time is None:
        return None
    if after.tzinfo is None:
        return fire_time.astimezone().replace(tzinfo=None)
    return fire_time


def describe_cron(expression: str) -> str:
    """Human-readable description of a schedule."""
    if not validate_cron_expression(expression):
        return "Invalid cron expression"

    normalized = " ".join(expression.split())
    if normalized in _COMMON_DESCRIPTIONS:
        return _COMMON_DESCRIPTIONS[normalized]

    minute, hour, day, month, weekday = normalized.split()

    if minute == "*":
        description = "Every minute"
    elif minute.startswith("*/"):
        description = f"Every {minute[2:]} minutes"
    else:
        description = f"At minute {minute}"

    if hour != "*":
        if hour.startswith("*/"):
            description += f", every {hour[2:]} hours"
        else:
            description += f" past hour {hour}"

    if day != "*":
        description += f", on day {day}"

    if month.isdigit() and 1 <= int(month) <= 12:
        description += f", in {_MONTHS[int(month)]}"

    if weekday.isdigit() and 0 <= int(weekday) <= 7:
        description += f", on {_WEEKDAYS[int(weekday) % 7]}"

    return description


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count != 1 else ''}"


def time_until_next_run(next_run: datetime, now: datetime | None = None) -> str:
    """Relative time until `next_run`, e.g. "in 2 hours 5 min"; "Overdue" if past."""
    now = now or datetime.now(next_run.tzinfo)
    seconds = int((next_run - now).total_seconds())
    if seconds < 0:
        return "Overdue"

    minutes, hours, days = seconds // 60, seconds // 3600, seconds // 86400
    if days > 0:
        return f"in {_plural(days, 'day')}"
    if hours > 0:
        return f"in {_plural(hours, 'hour')} {minutes % 60} min"
    if minutes > 0:
        return f"in {_plural(minutes, 'minute')}"
    return f"in {_plural(seconds, 'second')}"
