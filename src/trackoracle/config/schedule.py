"""Cron schedule configuration."""

from __future__ import annotations

from dataclasses import dataclass

from croniter import croniter

from .env import optional_env_var
from .errors import InvalidConfigurationError

DEFAULT_CRON_SCHEDULE = "0 */5 * * * *"


def normalize_cron_expression(expression: str) -> str:
    """Return ``expression`` in croniter field order.

    Accepts standard five-field expressions and six- or seven-field expressions with
    leading seconds (``sec min hour dom mon dow [year]``); croniter expects seconds
    after the day of week.
    """

    fields = expression.split()
    if len(fields) == 5:
        normalized = " ".join(fields)
    elif len(fields) in {6, 7}:
        seconds, rest = fields[0], fields[1:]
        normalized = " ".join([*rest[:5], seconds, *rest[5:]])
    else:
        raise InvalidConfigurationError(
            "CRON_SCHEDULE", f"{expression!r} must have 5, 6 or 7 fields, got {len(fields)}"
        )
    if not croniter.is_valid(normalized):
        raise InvalidConfigurationError("CRON_SCHEDULE", f"invalid cron expression {expression!r}")
    return normalized


@dataclass(frozen=True, slots=True)
class ScheduleConfig:
    expression: str
    run_immediately: bool = True


def get_schedule_config() -> ScheduleConfig:
    raw = optional_env_var("CRON_SCHEDULE") or DEFAULT_CRON_SCHEDULE
    return ScheduleConfig(expression=normalize_cron_expression(raw))
