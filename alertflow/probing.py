"""Endpoint probing: building conditions, counting failures and recoveries."""

from __future__ import annotations

import copy
import dataclasses
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from .cache import EventCache
from .conditions import EvalCondition
from .events import ProbingEvent

ICMP_ENDPOINT = "ICMP"
HTTP_ENDPOINT = "HTTP"
TCP_ENDPOINT = "TCP"
SSL_ENDPOINT = "SSL"


@dataclass
class ProbingStrategy:
    """How often to probe, what to compare, and how many failures make an alert."""

    eval_interval: int = 0
    timeout: int = 0
    failure: int = 0
    operator: str = ""
    field: str = ""
    expected_value: float = 0.0


@dataclass
class ProbingRule:
    """A rule that probes one endpoint."""

    tenant_id: str = ""
    rule_id: str = ""
    rule_type: str = ""
    notice_id: str = ""
    severity: str = ""
    repeat_notice_interval: int = 0
    recover_notify: bool = False
    annotations: str = ""
    endpoint: str = ""
    strategy: ProbingStrategy = field(default_factory=ProbingStrategy)
    enabled: bool = True

    def default_event(self) -> ProbingEvent:
        """A fresh, not recovered event carrying this rule's settings."""
        return ProbingEvent(
            tenant_id=self.tenant_id,
            rule_id=self.rule_id,
            rule_type=self.rule_type,
            notice_id=self.notice_id,
            severity=self.severity,
            is_recovered=False,
            repeat_notice_interval=self.repeat_notice_interval,
            recover_notify=self.recover_notify,
            probing_endpoint_config={
                "endpoint": self.endpoint,
                "strategy": dataclasses.asdict(self.strategy),
            },
        )


def build_condition(rule: ProbingRule, values: Mapping[str, Any]) -> EvalCondition:
    """The condition that decides whether a probe result counts as a failure.

    TCP probes fire when the connection succeeded flag equals one; other probes
    compare the configured field of the result against the expected value.
    """
    if rule.rule_type == TCP_ENDPOINT:
        succeeded = 1.0 if values.get("IsSuccessful") is True else 0.0
        return EvalCondition("==", succeeded, 1.0)

    name = rule.strategy.field
    if name not in values:
        raise ValueError(f"probe result has no field {name!r}")
    try:
        query_value = float(values[name])
    except (TypeError, ValueError) as exc:
        raise ValueError(f"probe field {name!r} is not numeric") from exc
    return EvalCondition(rule.strategy.operator, query_value, rule.strategy.expected_value)


class ProbingEvaluator:
    """Tracks consecutive probe failures and keeps the cached probing events."""

    def __init__(
        self, events: EventCache, clock: Callable[[], float] = time.time
    ) -> None:
        self.events = events
        self._clock = clock
        self._lock = threading.Lock()
        self.timing: dict[str, int] = {}

    def _now(self, now: int | None) -> int:
        return int(self._clock()) if now is None else int(now)

    def evaluate(
        self,
        event: ProbingEvent,
        condition: EvalCondition,
        failure_threshold: int,
        now: int | None = None,
    ) -> bool:
        """Feed one probe result.

        When the condition holds, the failure count of the rule grows; reaching
        ``failure_threshold`` stores the event as firing and resets the count.
        Otherwise a cached event of the rule is marked recovered. Returns True
        when the event was stored as firing.
        """
        if condition.holds():
            with self._lock:
                count = self.timing.get(event.rule_id, 0) + 1
                self.timing[event.rule_id] = count
            if count >= failure_threshold:
                self.save_event(event)
                with self._lock:
                    self.timing[event.rule_id] = 0
                return True
            return False

        key = event.firing_key()
        try:
            cached = self.events.get_probing(key)
        except KeyError:
            return False
        cached.first_trigger_time = self.events.get_probing_first_time(key)
        cached.is_recovered = True
        cached.recover_time = self._now(now)
        cached.last_send_time = 0
        self.events.set_probing(cached, 0)
        with self._lock:
            self.timing.pop(cached.rule_id, None)
        return False

    def save_event(self, event: ProbingEvent) -> ProbingEvent:
        """Store ``event`` as firing, keeping the times of an earlier firing."""
        key = event.firing_key()
        try:
            previous = self.events.get_probing(key)
        except KeyError:
            previous = ProbingEvent()
        event.first_trigger_time = self.events.get_probing_first_time(key)
        event.last_eval_time = self.events.get_probing_last_eval_time(key)
        event.last_send_time = previous.last_send_time
        self.events.set_probing(event, 0)
        return event

    def should_notify(self, event: ProbingEvent, now: int | None = None) -> bool:
        """Decide whether a cached probing event should be sent now.

        A firing event is due when never sent or when its repeat interval (in
        minutes) has passed; its send time is then recorded. A recovered event
        is always due and is removed from the cache.
        """
        if not event.rule_id:
            return False
        if event.is_recovered:
            self.events.del_cache(event.firing_key())
            return True
        due = event.last_send_time == 0 or (
            event.last_eval_time
            >= event.last_send_time + event.repeat_notice_interval * 60
        )
        if not due:
            return False
        updated = copy.deepcopy(event)
        updated.last_send_time = self._now(now)
        self.events.set_probing(updated, 0)
        return True