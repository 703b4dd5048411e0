"""Grouping, deduplication and dispatch of firing and recovered alerts."""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

from .cache import EventCache, KeyValueStore, SilenceCache
from .config import AlarmConfig
from .events import AlertCurEvent, AlertRule
from .mute import MuteParams, is_muted, is_silenced

logger = logging.getLogger(__name__)

RuleLookup = Callable[[str], "AlertRule | None"]
Notifier = Callable[[AlertCurEvent, str], None]
HistoryRecorder = Callable[[AlertCurEvent], None]
SubscriptionSource = Callable[[AlertCurEvent], Iterable["Subscription"]]
Mailer = Callable[[AlertCurEvent, "Subscription"], None]


def _json_marshal(value: Any) -> str:
    text = json.dumps(
        value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str
    )
    return text.replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")


@dataclass
class Subscription:
    """A user's subscription to the alerts of a rule."""

    user_email: str
    rule_severities: list[str] = field(default_factory=list)
    filters: list[str] = field(default_factory=list)
    notice_subject: str = ""
    notice_template_id: str = ""


def filter_alerts(alerts: Iterable[AlertCurEvent]) -> dict[str, list[AlertCurEvent]]:
    """Keep the latest event per fingerprint and drop those not yet due again.

    Firing events are kept when they were never sent or their repeat interval
    (in minutes) has passed; recovered events are always kept. The result is
    grouped by rule id.
    """
    latest: dict[str, AlertCurEvent] = {}
    for alert in alerts:
        existing = latest.get(alert.fingerprint)
        if existing is None or alert.last_eval_time > existing.last_eval_time:
            latest[alert.fingerprint] = alert

    grouped: dict[str, list[AlertCurEvent]] = {}
    for alert in latest.values():
        due = alert.last_send_time == 0 or (
            alert.last_eval_time
            >= alert.last_send_time + alert.repeat_notice_interval * 60
        )
        if alert.is_recovered or due:
            grouped.setdefault(alert.rule_id, []).append(alert)
    return grouped


def _group_hash(key: str, value: str) -> str:
    return hashlib.md5(f"{key}:{value}".encode("utf-8")).hexdigest()


def group_key(event: AlertCurEvent) -> str:
    """The notification group of ``event``.

    When a notice group's key/value pair appears in the event's metric, the
    group is ``<md5 of "key:value">_<rule id>``; otherwise it is the rule id.
    """
    if not event.notice_group:
        return event.rule_id
    for key, value in event.metric.items():
        for group in event.notice_group:
            if group.get("key") == key and group.get("value") == value:
                return f"{_group_hash(key, str(value))}_{event.rule_id}"
    return event.rule_id


def _rule_id_of_group(key: str) -> str:
    if "_" in key:
        return key.partition("_")[2]
    return key


def notice_group_id(event: AlertCurEvent) -> str:
    """The notice to use: a matching notice group's, else the event's own."""
    if event.notice_group:
        candidates = [
            {group.get("key"): group.get("value"), "noticeId": group.get("noticeId")}
            for group in event.notice_group
        ]
        for metric_key, metric_value in event.metric.items():
            for candidate in candidates:
                if metric_key in candidate and candidate[metric_key] == metric_value:
                    return candidate["noticeId"] or ""
    return event.notice_id


def aggregate_alerts(
    alerts: list[AlertCurEvent],
    now: int,
    is_silenced: Callable[[AlertCurEvent], bool],
) -> list[AlertCurEvent]:
    """Collapse several events into one notice.

    Every event that is not silenced gets a note of the total count appended
    to its annotations and, while firing, its send time set to ``now``; these
    changes are made in place. The last such event is returned alone. A single
    event is returned untouched, and an empty list when all are silenced.
    """
    if not alerts:
        return []
    if len(alerts) == 1:
        return list(alerts)

    chosen: AlertCurEvent | None = None
    note = "\n" + f"聚合 {len(alerts)} 条告警\n"
    for alert in alerts:
        if is_silenced(alert):
            continue
        alert.annotations += note
        if not alert.is_recovered:
            alert.last_send_time = now
        chosen = alert
    return [chosen] if chosen is not None else []


def match_subscribers(
    event: AlertCurEvent, subscriptions: Iterable[Subscription]
) -> list[Subscription]:
    """Subscriptions whose severities include the event's and whose filters match.

    A filter matches when it occurs in the JSON form of the event's metric or
    in its annotations; a subscription without filters matches any event.
    """
    metric_text = _json_marshal(event.metric)
    matched: list[Subscription] = []
    for subscription in subscriptions:
        if event.severity not in subscription.rule_severities:
            continue
        if subscription.filters and not any(
            needle in metric_text or needle in event.annotations
            for needle in subscription.filters
        ):
            continue
        matched.append(subscription)
    return matched


class AlertConsumer:
    """Collects cached firing events per rule and dispatches them in batches."""

    def __init__(
        self,
        events: EventCache,
        rule_lookup: RuleLookup,
        notifier: Notifier,
        *,
        alarm_config: AlarmConfig | None = None,
        silences: SilenceCache | None = None,
        history: HistoryRecorder | None = None,
        subscriptions: SubscriptionSource | None = None,
        mailer: Mailer | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.events = events
        self.alarm_config = (alarm_config or AlarmConfig()).with_defaults()
        self.silences = silences if silences is not None else SilenceCache(KeyValueStore())
        self._rule_lookup = rule_lookup
        self._notifier = notifier
        self._history = history
        self._subscriptions = subscriptions
        self._mailer = mailer
        self._clock = clock
        self._lock = threading.Lock()
        self._alerts: dict[str, list[AlertCurEvent]] = {}
        self.timing: dict[str, int] = {}

    def process(self, firing_keys: Iterable[str]) -> list[AlertCurEvent]:
        """Run one tick over the given firing cache keys.

        Each rule's events are held until the rule has waited ``group_wait``
        ticks (``group_interval`` once something was sent), then dispatched.
        Returns the events handed to the notifier.
        """
        for key in firing_keys:
            event = self.events.get_cache(key)
            if event.fingerprint:
                with self._lock:
                    self._alerts.setdefault(event.rule_id, []).append(event)

        sent: list[AlertCurEvent] = []
        with self._lock:
            pending = list(self._alerts.items())
        for rule_id, alerts in pending:
            if not alerts:
                continue
            if self.timing.get(rule_id, 0) >= self._wait_time(alerts):
                sent.extend(self.fire(filter_alerts(alerts)))
                self._clear(rule_id)
            self.timing[rule_id] = self.timing.get(rule_id, 0) + 1
        return sent

    def _wait_time(self, alerts: Iterable[AlertCurEvent]) -> int:
        if all(alert.last_send_time == 0 for alert in alerts):
            return self.alarm_config.group_wait
        return self.alarm_config.group_interval

    def _clear(self, rule_id: str) -> None:
        with self._lock:
            self._alerts.pop(rule_id, None)
            self.timing[rule_id] = 0

    def fire(
        self, alerts_by_rule: Mapping[str, list[AlertCurEvent]]
    ) -> list[AlertCurEvent]:
        """Group the events, retire recovered ones and send notices.

        Recovered events are removed from the firing cache and recorded in the
        history; if recording fails nothing is sent. Returns the events sent.
        """
        firing: dict[str, list[AlertCurEvent]] = {}
        recovering: dict[str, list[AlertCurEvent]] = {}
        for alerts in alerts_by_rule.values():
            for alert in alerts:
                target = recovering if alert.is_recovered else firing
                target.setdefault(group_key(alert), []).append(alert)
                if alert.is_recovered:
                    self.events.del_cache(alert.firing_key())
                    if self._history is not None:
                        try:
                            self._history(alert)
                        except Exception:
                            logger.exception("recording history event failed")
                            return []

        return self._send_groups(firing) + self._send_groups(recovering)

    def _send_groups(
        self, groups: Mapping[str, list[AlertCurEvent]]
    ) -> list[AlertCurEvent]:
        sent: list[AlertCurEvent] = []
        for key, alerts in groups.items():
            rule = self._rule_lookup(_rule_id_of_group(key))
            if rule is None or not rule.rule_id or not alerts:
                continue
            self._handle_subscribe(alerts)
            sent.extend(self._handle_alert(rule, alerts))
        return sent

    def _silenced(self, alert: AlertCurEvent) -> bool:
        params = MuteParams(tenant_id=alert.tenant_id, fingerprint=alert.fingerprint)
        return is_silenced(params, self.silences)

    def _handle_subscribe(self, alerts: Iterable[AlertCurEvent]) -> None:
        if self._subscriptions is None or self._mailer is None:
            return
        for alert in alerts:
            try:
                for subscription in match_subscribers(alert, self._subscriptions(alert)):
                    self._mailer(alert, subscription)
            except Exception:
                logger.exception("processing subscriptions failed")

    def _handle_alert(
        self, rule: AlertRule, alerts: list[AlertCurEvent]
    ) -> list[AlertCurEvent]:
        now = int(self._clock())
        if rule.alarm_aggregation:
            originals = list(alerts)
            alerts = aggregate_alerts(originals, now, self._silenced)
            if len(originals) > 1:
                for alert in originals:
                    if not alert.is_recovered and not self._silenced(alert):
                        self.events.set_cache("Firing", alert, 0)

        sent: list[AlertCurEvent] = []
        for alert in alerts:
            notice_id = notice_group_id(alert)
            if not alert.is_recovered:
                alert.last_send_time = now
                self.events.set_cache("Firing", alert, 0)

            params = MuteParams(
                effective_time=alert.effective_time,
                recover_notify=alert.recover_notify,
                is_recovered=alert.is_recovered,
                tenant_id=alert.tenant_id,
                fingerprint=alert.fingerprint,
            )
            if is_muted(params, self.silences):
                return sent

            try:
                self._notifier(alert, notice_id)
            except Exception:
                logger.exception("sending notice failed")
                return sent
            sent.append(alert)
        return sent