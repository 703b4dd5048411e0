"""In-memory, lock-guarded stores used by the alert engine."""

from __future__ import annotations

import threading
from typing import Any

from .events import AlertCurEvent


class AlertNotFound(LookupError):
    """Raised when an alert is not in the cache."""

    def __init__(self, fingerprint: str = "") -> None:
        super().__init__("alert not found")
        self.fingerprint = fingerprint


class ClientNotFound(LookupError):
    """Raised when no provider client is registered for a datasource."""

    def __init__(self, key: str) -> None:
        super().__init__(f"client not found in cache, datasourceId: {key}")
        self.key = key


class AlarmRecoverWaitStore:
    """Firing keys waiting out the recovery period, with the time they were first seen."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: dict[str, int] = {}

    def set(self, key: str, timestamp: int) -> None:
        with self._lock:
            self._data[key] = timestamp

    def get(self, key: str) -> int | None:
        """The recorded time for ``key``, or None when it is not waiting."""
        with self._lock:
            return self._data.get(key)

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def search(self, prefix: str) -> list[str]:
        """All stored keys starting with ``prefix``."""
        with self._lock:
            return [k for k in self._data if k.startswith(prefix)]

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class AlertsCurEventCache:
    """Current alert events keyed by fingerprint."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._data: dict[str, AlertCurEvent] = {}

    def get(self, fingerprint: str) -> AlertCurEvent:
        with self._lock:
            try:
                return self._data[fingerprint]
            except KeyError:
                raise AlertNotFound(fingerprint) from None

    def set(self, fingerprint: str, event: AlertCurEvent) -> None:
        with self._lock:
            self._data[fingerprint] = event

    def delete(self, fingerprint: str) -> None:
        with self._lock:
            self._data.pop(fingerprint, None)

    def list(self) -> dict[str, AlertCurEvent]:
        """A snapshot of all cached events."""
        with self._lock:
            return dict(self._data)


class ProviderPoolStore:
    """Datasource clients keyed by datasource id."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._clients: dict[str, Any] = {}

    def set_client(self, key: str, client: Any) -> None:
        with self._lock:
            self._clients[key] = client

    def get_client(self, key: str) -> Any:
        with self._lock:
            try:
                return self._clients[key]
            except KeyError:
                raise ClientNotFound(key) from None

    def remove_client(self, key: str) -> None:
        with self._lock:
            self._clients.pop(key, None)