"""Alert rules and the events they produce."""

from __future__ import annotations

import copy
import dataclasses
from dataclasses import dataclass, field
from typing import Any, Mapping

FIRING_ALERT_CACHE_PREFIX = "firing:"
PENDING_ALERT_CACHE_PREFIX = "pending:"
SILENCE_CACHE_PREFIX = "silence:"
PROBING_CACHE_PREFIX = "probing:"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _dump(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _to_dict(value)
    return copy.deepcopy(value)


def _to_dict(obj: Any) -> dict[str, Any]:
    return {_camel(f.name): _dump(getattr(obj, f.name)) for f in dataclasses.fields(obj)}


def _from_dict(cls: type, data: Mapping[str, Any]) -> Any:
    if not isinstance(data, Mapping):
        raise ValueError(f"{cls.__name__} data must be a mapping")
    kwargs = {}
    for f in dataclasses.fields(cls):
        key = _camel(f.name)
        if key not in data or data[key] is None:
            continue
        nested = f.metadata.get("nested")
        raw = data[key]
        kwargs[f.name] = _from_dict(nested, raw) if nested else copy.deepcopy(raw)
    return cls(**kwargs)


@dataclass
class EffectiveTime:
    """Week days and a seconds-of-day window during which notices are sent."""

    week: list[str] = field(default_factory=list)
    start_time: int = 0
    end_time: int = 0


@dataclass
class AlertRule:
    """An alert rule as far as event building needs it."""

    tenant_id: str = ""
    rule_id: str = ""
    rule_name: str = ""
    rule_group_id: str = ""
    datasource_type: str = ""
    datasource_id_list: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)
    eval_interval: int = 0
    for_duration: int = 0
    notice_id: str = ""
    notice_group: list[dict[str, str]] = field(default_factory=list)
    repeat_notice_interval: int = 0
    severity: str = ""
    effective_time: EffectiveTime = field(default_factory=EffectiveTime)
    recover_notify: bool = False
    alarm_aggregation: bool = False
    enabled: bool = True


@dataclass
class AlertCurEvent:
    """A current (pending, firing or just recovered) alert event."""

    tenant_id: str = ""
    datasource_type: str = ""
    datasource_id: str = ""
    fingerprint: str = ""
    rule_id: str = ""
    rule_name: str = ""
    severity: str = ""
    metric: dict[str, Any] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
    eval_interval: int = 0
    for_duration: int = 0
    notice_id: str = ""
    notice_group: list[dict[str, str]] = field(default_factory=list)
    annotations: str = ""
    is_recovered: bool = False
    first_trigger_time: int = 0
    first_trigger_time_format: str = ""
    repeat_notice_interval: int = 0
    last_eval_time: int = 0
    last_send_time: int = 0
    recover_time: int = 0
    recover_time_format: str = ""
    duty_user: str = ""
    effective_time: EffectiveTime = field(
        default_factory=EffectiveTime, metadata={"nested": EffectiveTime}
    )
    recover_notify: bool = False
    alarm_aggregation: bool = False

    def _tail(self) -> str:
        return f"{self.rule_id}-{self.datasource_id}-{self.fingerprint}"

    def firing_key(self) -> str:
        """Cache key under which this event is stored while firing."""
        return f"{self.tenant_id}:{FIRING_ALERT_CACHE_PREFIX}{self._tail()}"

    def pending_key(self) -> str:
        """Cache key under which this event is stored while pending."""
        return f"{self.tenant_id}:{PENDING_ALERT_CACHE_PREFIX}{self._tail()}"

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AlertCurEvent":
        return _from_dict(cls, data)


@dataclass
class ProbingEvent:
    """An event produced by an endpoint probing rule."""

    tenant_id: str = ""
    rule_id: str = ""
    rule_type: str = ""
    fingerprint: str = ""
    severity: str = ""
    metric: dict[str, Any] = field(default_factory=dict)
    notice_id: str = ""
    annotations: str = ""
    is_recovered: bool = False
    first_trigger_time: int = 0
    first_trigger_time_format: str = ""
    repeat_notice_interval: int = 0
    last_eval_time: int = 0
    last_send_time: int = 0
    recover_time: int = 0
    recover_time_format: str = ""
    duty_user: str = ""
    recover_notify: bool = False
    probing_endpoint_config: dict[str, Any] = field(default_factory=dict)

    def firing_key(self) -> str:
        """Cache key of the firing state of this event's rule."""
        return f"{self.tenant_id}:{PROBING_CACHE_PREFIX}{self.rule_id}"

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProbingEvent":
        return _from_dict(cls, data)

    def to_alert_event(self) -> AlertCurEvent:
        """Convert to an alert event for templating and sending."""
        return AlertCurEvent(
            tenant_id=self.tenant_id,
            rule_id=self.rule_id,
            fingerprint=self.fingerprint,
            severity=self.severity,
            metric=dict(self.metric),
            notice_id=self.notice_id,
            annotations=self.annotations,
            is_recovered=self.is_recovered,
            first_trigger_time=self.first_trigger_time,
            first_trigger_time_format=self.first_trigger_time_format,
            repeat_notice_interval=self.repeat_notice_interval,
            last_eval_time=self.last_eval_time,
            last_send_time=self.last_send_time,
            recover_time=self.recover_time,
            recover_time_format=self.recover_time_format,
            duty_user=self.duty_user,
            recover_notify=self.recover_notify,
        )


def build_event(rule: AlertRule) -> AlertCurEvent:
    """Start a new, not yet recovered event for ``rule``."""
    return AlertCurEvent(
        tenant_id=rule.tenant_id,
        datasource_type=rule.datasource_type,
        rule_id=rule.rule_id,
        rule_name=rule.rule_name,
        labels=dict(rule.labels),
        eval_interval=rule.eval_interval,
        for_duration=rule.for_duration,
        notice_id=rule.notice_id,
        notice_group=[dict(g) for g in rule.notice_group],
        is_recovered=False,
        repeat_notice_interval=rule.repeat_notice_interval,
        severity=rule.severity,
        effective_time=copy.deepcopy(rule.effective_time),
        recover_notify=rule.recover_notify,
        alarm_aggregation=rule.alarm_aggregation,
    )