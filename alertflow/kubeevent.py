"""Kubernetes warning events turned into alert fingerprints and labels."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Iterable


def _json_marshal(value: Any) -> str:
    text = json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return text.replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")


@dataclass(frozen=True)
class KubeEvent:
    """The parts of a Kubernetes event that alerting uses."""

    namespace: str = ""
    reason: str = ""
    message: str = ""
    involved_kind: str = ""
    involved_name: str = ""
    type: str = "Warning"


@dataclass(frozen=True)
class KubernetesAlertEvent:
    """Wraps a Kubernetes event to give its alert identity."""

    event: KubeEvent

    def metrics(self) -> dict[str, Any]:
        return {
            "namespace": self.event.namespace,
            "resource": self.event.reason,
            "podName": self.event.involved_name,
        }

    def fingerprint(self) -> str:
        """MD5 hex digest of the JSON form of the event's labels."""
        return hashlib.md5(_json_marshal(self.metrics()).encode("utf-8")).hexdigest()


def filter_kube_events(
    events: Iterable[KubeEvent], filters: Iterable[str] | None
) -> list[KubeEvent]:
    """Drop events whose involved object name contains any of ``filters``."""
    if filters is None:
        return list(events)
    needles = list(filters)
    return [
        event
        for event in events
        if not any(needle in event.involved_name for needle in needles)
    ]