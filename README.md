# alertflow

`alertflow` is a library holding the alerting logic of a monitoring system.
It compares query results with rule thresholds, keeps pending and firing
alert state in an in-memory key/value store, applies silences and
effective-time windows, groups and de-duplicates alerts before they are
handed to a notifier you supply, and tracks consecutive failures of
endpoint probes.

## Installation

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Modules

- `alertflow.config`: `AppConfig` with its sections (`ServerConfig`,
  `MySQLConfig`, `RedisConfig`, `JwtConfig`, `JaegerConfig`, `LdapConfig`,
  `AlarmConfig`), `AppConfig.from_dict(data)` and `load_config(path)`, which
  reads a YAML file (default `config/config.yaml`). Keys match
  case-insensitively and ignore underscores. Password fields are read from
  keys ending in `pass` (for example `pass`, `adminPass`). A malformed file or
  value raises `ValueError`. `AlarmConfig.with_defaults()` replaces zero
  values: `group_wait` 10, `group_interval` 120, `recover_wait` 1.
- `alertflow.conditions`: `EvalCondition` and
  `evaluate(operator, query_value, expected_value)` for `>`, `>=`, `<`, `<=`,
  `==` and `!=`. An unknown operator is logged and never holds.
- `alertflow.events`: `AlertRule`, `AlertCurEvent`, `ProbingEvent`,
  `EffectiveTime` and `build_event(rule)`. Events have cache keys
  (`firing_key()`, `pending_key()`) and convert to and from camel-cased
  dictionaries (`to_dict()`, `from_dict()`).
- `alertflow.store`: thread-safe in-memory stores: `AlarmRecoverWaitStore`,
  `AlertsCurEventCache` (raises `AlertNotFound`) and `ProviderPoolStore`
  (raises `ClientNotFound`).
- `alertflow.cache`: `KeyValueStore`, an in-memory string store with glob
  `keys()`, per-key expiry and `ttl()`. `EventCache`, `RuleCache` and
  `SilenceCache` are built on top of it.
- `alertflow.kubeevent`: `KubeEvent`, `KubernetesAlertEvent` (MD5
  fingerprint and labels) and `filter_kube_events(events, filters)`.
- `alertflow.mute`: `MuteParams`, `is_muted`, `is_silenced`,
  `in_effective_time` and `recover_notify`.
- `alertflow.middleware`: `cors_headers(method, origin)` returns the CORS
  headers and 204 for `OPTIONS`. `log_level(status_code)` and
  `request_log_line(...)` produce a JSON request log line.
- `alertflow.evaluator`: `AlertEngine` has `save_event`, `recover`,
  `gc_pending` and `gc_recover_wait`. `parse_rule_expr(">80")` returns
  `(">", 80.0)`. A firing key that disappears is marked recovered only after
  `recover_wait` minutes.
- `alertflow.consumer`: `AlertConsumer` has `process(firing_keys)` and
  `fire(...)`. The module also provides `filter_alerts`, `group_key`,
  `notice_group_id`, `aggregate_alerts`, `match_subscribers` and
  `Subscription`. `process` counts calls as ticks. A rule's events are
  dispatched after `group_wait` ticks, or after `group_interval` ticks once
  something was sent.
- `alertflow.probing`: `ProbingStrategy`, `ProbingRule`, `ProbingEvaluator`
  and `build_condition(rule, values)`.

## Example

```python
from alertflow.conditions import evaluate

evaluate(">", 95.0, 90.0)   # True
evaluate("<=", 3.0, 1.0)    # False
```

```python
from alertflow.cache import EventCache, KeyValueStore, RuleCache
from alertflow.evaluator import AlertEngine
from alertflow.events import AlertRule, build_event
from alertflow.store import AlarmRecoverWaitStore

store = KeyValueStore()
engine = AlertEngine(EventCache(store), RuleCache(store), AlarmRecoverWaitStore())

rule = AlertRule(tenant_id="t1", rule_id="r1", datasource_id_list=["ds1"])
event = build_event(rule)
event.datasource_id = "ds1"
event.fingerprint = "fp"

engine.save_event(event)   # True: with no for_duration it fires at once
store.keys()               # ["t1:firing:r1-ds1-fp"]
```

## What this package does not do

- It has no HTTP server, no REST API and no command-line program.
- It has no database, and no Redis or other external cache.
  `KeyValueStore` keeps everything in process memory.
- It does not query data sources. Prometheus, logs, traces, CloudWatch and
  Kubernetes queries are outside it; callers pass in the results.
- It does not perform probes. No ICMP, HTTP, TCP or SSL requests are made;
  `ProbingEvaluator` only judges results it is given.
- It sends no notices or e-mails itself. `AlertConsumer` calls the
  `notifier` and `mailer` callables you provide.
- It has no notice templates, duty schedules or user management.