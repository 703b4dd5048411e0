from datetime import datetime

import pytest

from alertflow.cache import KeyValueStore, SilenceCache
from alertflow.events import EffectiveTime
from alertflow.mute import (
    MuteParams,
    in_effective_time,
    is_muted,
    is_silenced,
    recover_notify,
)

MONDAY_NOON = datetime(2024, 1, 1, 12, 0, 0)
WHOLE_DAY = 24 * 3600 - 1


@pytest.fixture
def silences():
    return SilenceCache(KeyValueStore())


def test_no_week_never_muted():
    assert in_effective_time(MuteParams(), MONDAY_NOON) is False


def test_inside_window_not_muted():
    params = MuteParams(effective_time=EffectiveTime(["Monday"], 0, WHOLE_DAY))
    assert in_effective_time(params, MONDAY_NOON) is False


def test_wrong_day_muted():
    params = MuteParams(effective_time=EffectiveTime(["Tuesday"], 0, WHOLE_DAY))
    assert in_effective_time(params, MONDAY_NOON) is True


def test_outside_hours_muted():
    params = MuteParams(effective_time=EffectiveTime(["Monday"], 0, 3600))
    assert in_effective_time(params, MONDAY_NOON) is True


@pytest.mark.parametrize(
    "recovered, notify, expected",
    [(True, False, True), (True, True, False), (False, False, False)],
)
def test_recover_notify(recovered, notify, expected):
    params = MuteParams(is_recovered=recovered, recover_notify=notify)
    assert recover_notify(params) is expected


def test_silenced(silences):
    params = MuteParams(tenant_id="t1", fingerprint="fp")
    assert is_silenced(params, silences) is False
    silences.set_cache("t1", "fp", "{}")
    assert is_silenced(params, silences) is True


def test_is_muted_combines(silences):
    params = MuteParams(tenant_id="t1", fingerprint="fp", recover_notify=True)
    assert is_muted(params, silences, MONDAY_NOON) is False
    silences.set_cache("t1", "fp", "{}")
    assert is_muted(params, silences, MONDAY_NOON) is True


def test_is_muted_by_recovery(silences):
    params = MuteParams(tenant_id="t1", fingerprint="x", is_recovered=True)
    assert is_muted(params, silences, MONDAY_NOON) is True