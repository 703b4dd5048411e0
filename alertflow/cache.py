"""Key-value cache of alert, probing and silence state."""

from __future__ import annotations

import fnmatch
import json
import logging
import threading
import time
from datetime import timedelta
from typing import Any, Callable, Iterable, Mapping

from .events import (
    FIRING_ALERT_CACHE_PREFIX,
    PENDING_ALERT_CACHE_PREFIX,
    SILENCE_CACHE_PREFIX,
    AlertCurEvent,
    ProbingEvent,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Expiration = "float | int | timedelta | None"


def _deadline(now: float, expiration: Any) -> float | None:
    if expiration is None:
        return None
    seconds = (
        expiration.total_seconds()
        if isinstance(expiration, timedelta)
        else float(expiration)
    )
    return now + seconds if seconds > 0 else None


def _glob_match(key: str, pattern: str) -> bool:
    # Glob patterns negate a character class with "^"; fnmatch uses "!".
    return fnmatch.fnmatchcase(key, pattern.replace("[^", "[!"))


class KeyValueStore:
    """A thread-safe in-memory string store with per-key expiry.

    An expiration of zero or None keeps the key forever.
    """

    def __init__(self, clock: Clock = time.time) -> None:
        self._clock = clock
        self._lock = threading.RLock()
        self._data: dict[str, tuple[str, float | None]] = {}

    def _entry(self, key: str) -> tuple[str, float | None] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        _, deadline = entry
        if deadline is not None and self._clock() >= deadline:
            del self._data[key]
            return None
        return entry

    def set(self, key: str, value: str, expiration: Any = 0) -> None:
        with self._lock:
            self._data[key] = (value, _deadline(self._clock(), expiration))

    def get(self, key: str) -> str:
        """The value stored under ``key``; KeyError when absent or expired."""
        with self._lock:
            entry = self._entry(key)
            if entry is None:
                raise KeyError(key)
            return entry[0]

    def delete(self, *args: str) -> int:
        """Delete the given keys and return how many existed."""
        with self._lock:
            removed = 0
            for key in args:
                if self._entry(key) is not None:
                    del self._data[key]
                    removed += 1
            return removed

    def keys(self, pattern: str = "*") -> list[str]:
        """Live keys matching a glob ``pattern``, sorted."""
        with self._lock:
            return sorted(
                key
                for key in list(self._data)
                if self._entry(key) is not None and _glob_match(key, pattern)
            )

    def ttl(self, key: str) -> int:
        """Seconds left to live; -1 for no expiry, -2 when the key is absent."""
        with self._lock:
            entry = self._entry(key)
            if entry is None:
                return -2
            deadline = entry[1]
            if deadline is None:
                return -1
            return max(0, int(deadline - self._clock()))


class EventCache:
    """Alert and probing events stored as JSON in a key-value store."""

    def __init__(self, store: KeyValueStore, clock: Clock = time.time) -> None:
        self._store = store
        self._clock = clock
        self._lock = threading.RLock()

    def _now(self) -> int:
        return int(self._clock())

    def set_cache(
        self, cache_type: str, event: AlertCurEvent, expiration: Any = 0
    ) -> None:
        """Store ``event`` under its "Firing" or "Pending" key; other types are ignored."""
        payload = json.dumps(event.to_dict())
        with self._lock:
            if cache_type == "Firing":
                self._store.set(event.firing_key(), payload, expiration)
            elif cache_type == "Pending":
                self._store.set(event.pending_key(), payload, expiration)

    def del_cache(self, pattern: str) -> list[str]:
        """Delete every key matching ``pattern`` and return the deleted keys."""
        with self._lock:
            matched = self._store.keys(pattern)
            if matched:
                self._store.delete(*matched)
                logger.info("removed alert messages -> %s", matched)
            return matched

    def get_cache(self, key: str) -> AlertCurEvent:
        """The event under ``key``, or an empty event when there is none."""
        try:
            raw = self._store.get(key)
        except KeyError:
            return AlertCurEvent()
        try:
            return AlertCurEvent.from_dict(json.loads(raw))
        except (ValueError, TypeError):
            return AlertCurEvent()

    def get_first_time(self, key: str) -> int:
        return self.get_cache(key).first_trigger_time or self._now()

    def get_last_eval_time(self, key: str) -> int:
        now = self._now()
        last = self.get_cache(key).last_eval_time
        return now if last == 0 or last < now else last

    def get_last_send_time(self, key: str) -> int:
        return self.get_cache(key).last_send_time

    def set_probing(self, event: ProbingEvent, expiration: Any = 0) -> None:
        payload = json.dumps(event.to_dict())
        with self._lock:
            self._store.set(event.firing_key(), payload, expiration)

    def get_probing(self, key: str) -> ProbingEvent:
        """The probing event under ``key``; KeyError when there is none."""
        raw = self._store.get(key)
        try:
            return ProbingEvent.from_dict(json.loads(raw))
        except (ValueError, TypeError):
            return ProbingEvent()

    def _probing_or_empty(self, key: str) -> ProbingEvent:
        try:
            return self.get_probing(key)
        except KeyError:
            return ProbingEvent()

    def get_probing_first_time(self, key: str) -> int:
        return self._probing_or_empty(key).first_trigger_time or self._now()

    def get_probing_last_eval_time(self, key: str) -> int:
        now = self._now()
        last = self._probing_or_empty(key).last_eval_time
        return now if last == 0 or last < now else last

    def get_probing_last_send_time(self, key: str) -> int:
        return self._probing_or_empty(key).last_send_time


class RuleCache:
    """Lookups of a rule's cached firing and pending event keys."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def _collect(
        self, prefix: str, tenant_id: str, rule_id: str, datasource_ids: Iterable[str]
    ) -> list[str]:
        found: list[str] = []
        for datasource_id in datasource_ids:
            found.extend(
                self._store.keys(f"{tenant_id}:{prefix}{rule_id}-{datasource_id}-*")
            )
        return found

    def firing_keys(
        self, tenant_id: str, rule_id: str, datasource_ids: Iterable[str]
    ) -> list[str]:
        return self._collect(FIRING_ALERT_CACHE_PREFIX, tenant_id, rule_id, datasource_ids)

    def pending_keys(
        self, tenant_id: str, rule_id: str, datasource_ids: Iterable[str]
    ) -> list[str]:
        return self._collect(PENDING_ALERT_CACHE_PREFIX, tenant_id, rule_id, datasource_ids)


def silence_key(tenant_id: str, fingerprint: str) -> str:
    return f"{tenant_id}:{SILENCE_CACHE_PREFIX}{fingerprint}"


class SilenceCache:
    """Active silences keyed by tenant and event fingerprint."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def set_cache(
        self,
        tenant_id: str,
        fingerprint: str,
        payload: str | Mapping[str, Any],
        expiration: Any = 0,
    ) -> None:
        text = payload if isinstance(payload, str) else json.dumps(dict(payload))
        self._store.set(silence_key(tenant_id, fingerprint), text, expiration)

    def del_cache(self, tenant_id: str, fingerprint: str) -> None:
        self._store.delete(silence_key(tenant_id, fingerprint))

    def get_cache(self, tenant_id: str, fingerprint: str) -> str | None:
        """The stored silence, or None when the event is not silenced."""
        try:
            return self._store.get(silence_key(tenant_id, fingerprint))
        except KeyError:
            return None

    def ttl(self, tenant_id: str, fingerprint: str) -> int:
        return self._store.ttl(silence_key(tenant_id, fingerprint))