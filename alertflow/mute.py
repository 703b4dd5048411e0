"""Decisions on whether a notification should be held back."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .cache import SilenceCache
from .events import EffectiveTime

_WEEKDAYS = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


@dataclass
class MuteParams:
    effective_time: EffectiveTime = field(default_factory=EffectiveTime)
    recover_notify: bool = False
    is_recovered: bool = False
    tenant_id: str = ""
    fingerprint: str = ""


def is_muted(
    params: MuteParams, silences: SilenceCache, now: datetime | None = None
) -> bool:
    """True when the notice is silenced, out of its time window, or an unwanted recovery."""
    return (
        is_silenced(params, silences)
        or in_effective_time(params, now)
        or recover_notify(params)
    )


def in_effective_time(params: MuteParams, now: datetime | None = None) -> bool:
    """True when ``now`` lies outside the configured days or time window.

    With no days configured, nothing is muted.
    """
    window = params.effective_time
    if not window.week:
        return False
    now = now or datetime.now()
    if _WEEKDAYS[now.weekday()] not in window.week:
        return True
    seconds = now.hour * 3600 + now.minute * 60 + now.second
    return seconds < window.start_time or seconds > window.end_time


def recover_notify(params: MuteParams) -> bool:
    """True for a recovery whose rule has recovery notices switched off."""
    return params.is_recovered and not params.recover_notify


def is_silenced(params: MuteParams, silences: SilenceCache) -> bool:
    return silences.get_cache(params.tenant_id, params.fingerprint) is not None