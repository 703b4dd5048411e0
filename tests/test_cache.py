import json

import pytest

from alertflow.cache import EventCache, KeyValueStore, RuleCache, SilenceCache
from alertflow.events import AlertCurEvent, ProbingEvent


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return KeyValueStore(clock=clock)


def make_event(**overrides):
    values = dict(
        tenant_id="t1",
        rule_id="r1",
        datasource_id="ds1",
        fingerprint="fp1",
        metric={"instance": "host-a"},
        severity="P1",
    )
    values.update(overrides)
    return AlertCurEvent(**values)


def test_store_round_trip(store):
    store.set("k", "v")
    assert store.get("k") == "v"


def test_store_missing_key_raises(store):
    with pytest.raises(KeyError):
        store.get("absent")


def test_store_expiry(store, clock):
    store.set("k", "v", 10)
    clock.now += 4
    assert store.ttl("k") == 6
    clock.now += 6
    with pytest.raises(KeyError):
        store.get("k")
    assert store.ttl("k") == -2


def test_store_ttl_without_expiry(store):
    store.set("k", "v", 0)
    assert store.ttl("k") == -1


def test_store_delete_counts_existing(store):
    store.set("a", "1")
    store.set("b", "2")
    assert store.delete("a", "b", "c") == 2
    assert store.keys("*") == []


def test_store_keys_glob(store):
    for key in ("t1:firing:x", "t1:pending:x", "t2:firing:y"):
        store.set(key, "1")
    assert store.keys("*:firing:*") == ["t1:firing:x", "t2:firing:y"]


def test_event_cache_firing_round_trip(store, clock):
    cache = EventCache(store, clock=clock)
    event = make_event()
    cache.set_cache("Firing", event)
    assert cache.get_cache(event.firing_key()) == event
    assert store.keys(event.pending_key()) == []


def test_event_cache_pending_key(store, clock):
    cache = EventCache(store, clock=clock)
    event = make_event()
    cache.set_cache("Pending", event)
    assert cache.get_cache(event.pending_key()) == event


def test_event_cache_unknown_type_ignored(store, clock):
    cache = EventCache(store, clock=clock)
    cache.set_cache("Other", make_event())
    assert store.keys("*") == []


def test_event_cache_missing_gives_empty_event(store, clock):
    cache = EventCache(store, clock=clock)
    assert cache.get_cache("none") == AlertCurEvent()


def test_first_time_defaults_to_now(store, clock):
    cache = EventCache(store, clock=clock)
    assert cache.get_first_time("none") == int(clock.now)
    event = make_event(first_trigger_time=500)
    cache.set_cache("Firing", event)
    assert cache.get_first_time(event.firing_key()) == 500


def test_last_eval_time_never_in_past(store, clock):
    cache = EventCache(store, clock=clock)
    old = make_event(last_eval_time=10)
    cache.set_cache("Firing", old)
    assert cache.get_last_eval_time(old.firing_key()) == int(clock.now)
    future = make_event(fingerprint="fp2", last_eval_time=int(clock.now) + 50)
    cache.set_cache("Firing", future)
    assert cache.get_last_eval_time(future.firing_key()) == int(clock.now) + 50


def test_last_send_time(store, clock):
    cache = EventCache(store, clock=clock)
    event = make_event(last_send_time=77)
    cache.set_cache("Firing", event)
    assert cache.get_last_send_time(event.firing_key()) == 77


def test_del_cache_pattern(store, clock):
    cache = EventCache(store, clock=clock)
    a = make_event(fingerprint="a")
    b = make_event(fingerprint="b", rule_id="r2")
    cache.set_cache("Firing", a)
    cache.set_cache("Firing", b)
    deleted = cache.del_cache(a.firing_key())
    assert deleted == [a.firing_key()]
    assert store.keys("*") == [b.firing_key()]


def test_probing_round_trip(store, clock):
    cache = EventCache(store, clock=clock)
    event = ProbingEvent(tenant_id="t1", rule_id="p1", first_trigger_time=300)
    cache.set_probing(event)
    assert cache.get_probing(event.firing_key()) == event
    assert cache.get_probing_first_time(event.firing_key()) == 300


def test_probing_missing(store, clock):
    cache = EventCache(store, clock=clock)
    with pytest.raises(KeyError):
        cache.get_probing("none")
    assert cache.get_probing_first_time("none") == int(clock.now)
    assert cache.get_probing_last_eval_time("none") == int(clock.now)
    assert cache.get_probing_last_send_time("none") == 0


def test_rule_cache_keys_per_datasource(store, clock):
    events = EventCache(store, clock=clock)
    e1 = make_event(datasource_id="ds1", fingerprint="a")
    e2 = make_event(datasource_id="ds2", fingerprint="b")
    other = make_event(rule_id="r9", fingerprint="c")
    for event in (e1, e2, other):
        events.set_cache("Firing", event)
        events.set_cache("Pending", event)
    rules = RuleCache(store)
    assert sorted(rules.firing_keys("t1", "r1", ["ds1", "ds2"])) == sorted(
        [e1.firing_key(), e2.firing_key()]
    )
    assert rules.pending_keys("t1", "r1", ["ds2"]) == [e2.pending_key()]


def test_silence_cache(store, clock):
    silences = SilenceCache(store)
    assert silences.get_cache("t1", "fp") is None
    silences.set_cache("t1", "fp", {"id": "s1"}, 60)
    assert json.loads(silences.get_cache("t1", "fp")) == {"id": "s1"}
    silences.del_cache("t1", "fp")
    assert silences.get_cache("t1", "fp") is None


def test_silence_cache_expires(store, clock):
    silences = SilenceCache(store)
    silences.set_cache("t1", "fp", "raw", 5)
    clock.now += 5
    assert silences.get_cache("t1", "fp") is None