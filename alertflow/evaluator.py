"""Rule evaluation: pending/firing bookkeeping, recovery and cache cleanup."""

from __future__ import annotations

import re
import threading
import time
from typing import Callable, Iterable

from .cache import EventCache, RuleCache
from .config import AlarmConfig
from .events import FIRING_ALERT_CACHE_PREFIX, AlertCurEvent, AlertRule
from .store import AlarmRecoverWaitStore

_RULE_EXPR = re.compile(r"([^\d]+)(\d+)")


def parse_rule_expr(expr: str) -> tuple[str, float]:
    """Split a threshold expression such as ``">80"`` into operator and value.

    The operator is everything before the first run of digits, kept as written.
    """
    match = _RULE_EXPR.search(expr)
    if match is None:
        raise ValueError(f"invalid rule expression: {expr!r}")
    return match.group(1), float(match.group(2))


def _difference(keys: Iterable[str], exclude: Iterable[str]) -> list[str]:
    excluded = set(exclude)
    return [key for key in keys if key not in excluded]


def _intersection(keys: Iterable[str], other: Iterable[str]) -> list[str]:
    wanted = set(other)
    return [key for key in keys if key in wanted]


class AlertEngine:
    """Keeps the cached state of a rule's events in step with evaluation results."""

    def __init__(
        self,
        events: EventCache,
        rules: RuleCache,
        recover_store: AlarmRecoverWaitStore,
        alarm_config: AlarmConfig | None = None,
        rule_exists: Callable[[str], bool] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.events = events
        self.rules = rules
        self.recover_store = recover_store
        self.alarm_config = (alarm_config or AlarmConfig()).with_defaults()
        self._rule_exists = rule_exists or (lambda rule_id: True)
        self._clock = clock
        self._lock = threading.Lock()

    def save_event(self, event: AlertCurEvent) -> bool:
        """Record an evaluation hit for ``event``.

        The event stays pending until it has lasted its ``for_duration``; it is
        then stored as firing and its pending entry removed. Returns True when
        the event was stored as firing.
        """
        if not self._rule_exists(event.rule_id):
            return False

        with self._lock:
            firing_key = event.firing_key()
            pending_key = event.pending_key()

            firing = self.events.get_cache(firing_key)
            if firing.fingerprint:
                event.first_trigger_time = firing.first_trigger_time
                event.last_eval_time = self.events.get_last_eval_time(firing_key)
                event.last_send_time = firing.last_send_time
            else:
                event.first_trigger_time = self.events.get_first_time(pending_key)
                event.last_eval_time = self.events.get_last_eval_time(pending_key)
                event.last_send_time = self.events.get_last_send_time(pending_key)
                self.events.set_cache("Pending", event, 0)

            if firing.last_send_time == 0:
                if event.last_eval_time - event.first_trigger_time < event.for_duration:
                    return False

            self.events.set_cache("Firing", event, 0)
            self.events.del_cache(pending_key)
            return True

    def recover(
        self, rule: AlertRule, current_keys: Iterable[str], now: int | None = None
    ) -> list[str]:
        """Mark firing events that are no longer reported as recovered.

        A missing key first waits ``recover_wait`` minutes; only then is its event
        flagged as recovered. Returns the keys recovered by this call.
        """
        now = int(self._clock()) if now is None else int(now)
        firing = self.rules.firing_keys(
            rule.tenant_id, rule.rule_id, rule.datasource_id_list
        )
        recovered: list[str] = []
        wait_seconds = self.alarm_config.recover_wait * 60

        for key in _difference(firing, current_keys):
            event = self.events.get_cache(key)
            if event.is_recovered:
                break

            since = self.recover_store.get(key)
            if since is None:
                self.recover_store.set(key, now)
                continue
            if since + wait_seconds > now:
                continue

            event.is_recovered = True
            event.recover_time = now
            event.last_send_time = 0
            self.events.set_cache("Firing", event, 0)
            self.recover_store.remove(key)
            recovered.append(key)

        return recovered

    def gc_pending(self, rule: AlertRule, current_keys: Iterable[str]) -> list[str]:
        """Drop pending entries of ``rule`` that were not hit this round."""
        pending = self.rules.pending_keys(
            rule.tenant_id, rule.rule_id, rule.datasource_id_list
        )
        removed: list[str] = []
        for key in _difference(pending, current_keys):
            removed.extend(self.events.del_cache(key))
        return removed

    def gc_recover_wait(self, rule: AlertRule, current_keys: Iterable[str]) -> list[str]:
        """Stop the recovery wait of keys that are firing again."""
        if not rule.datasource_id_list:
            raise ValueError(f"rule {rule.rule_id!r} has no datasource")
        prefix = (
            f"{rule.tenant_id}:{FIRING_ALERT_CACHE_PREFIX}"
            f"{rule.rule_id}-{rule.datasource_id_list[0]}-"
        )
        waiting = self.recover_store.search(prefix)
        back = _intersection(waiting, current_keys)
        with self._lock:
            for key in back:
                self.recover_store.remove(key)
        return back