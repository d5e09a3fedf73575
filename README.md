# flagbucket

Building blocks for feature-flag evaluation, with no runtime dependencies.

| Module | What it holds |
| --- | --- |
| `flagbucket.user` | `User` and `PopulatedUser` (a user plus platform data and client custom data) |
| `flagbucket.filters` | Audience filters: `Filter`, `AudienceOperator`, `NoIdAudience`, `compile_filter_values` |
| `flagbucket.target` | `Target`, `TargetDistribution`, `Rollout`, `RolloutStage`, `VariationDecisionError` |
| `flagbucket.versions` | `version_compare`, `version_compare_equality`, `semver_compare` |
| `flagbucket.events` | `EventType`, `EvaluationReason`, `DefaultReason`, `EvalDetails`, `Event` and queue records |
| `flagbucket.event_queue` | `EventQueue`, `EventQueueOptions`, `EventQueueError` and a per-SDK-key registry |

## Installation

```
pip install flagbucket
```

## Users

`User.from_dict` reads a camelCase mapping. Every field except `lastSeenDate`
is required; `lastSeenDate` defaults to now. `User.to_dict` writes the same
shape back.

```python
from flagbucket.user import User

user = User.from_dict({
    "userId": "user-1",
    "email": "user-1@example.com",
    "name": "",
    "language": "en",
    "country": "CA",
    "appVersion": "2.1.0",
    "appBuild": "",
    "customData": {"plan": "pro"},
    "privateCustomData": {},
    "deviceModel": "",
})

platform_data = {"platform": "python", "platformVersion": "3.12"}
populated = user.get_populated_user(platform_data, created_date=None)
```

`PopulatedUser.from_user(user, platform_data, client_custom_data)` does the same
and then merges client custom data: a key is added only if it is in neither
`custom_data` nor `private_custom_data`. `combined_custom_data()` returns the
public custom data overlaid with the private custom data.

## Evaluating an audience

```python
from flagbucket.filters import NoIdAudience

audience = NoIdAudience.from_dict({
    "filters": {
        "operator": "and",
        "filters": [
            {"type": "user", "sub_type": "country", "comparator": "=", "values": ["CA"]},
            {"type": "user", "sub_type": "appVersion", "comparator": ">=", "values": ["2.0"]},
        ],
    }
})

audience.filters.evaluate({}, populated, {})   # True
```

Filter types:

- `all` always passes; `optIn` always fails.
- `user` compares one user attribute, chosen by `sub_type`: `user_id`, `email`,
  `country`, `platform`, `platformVersion`, `appVersion`, `deviceModel`, or
  `customData` (the first value is the key, looked up in the user's custom
  data, then the client custom data, then the private custom data). Platform
  values are read from the populated user's `platform_data` mapping.
- `audienceMatch` passes if any audience named in `_audiences` passes; with the
  `!=` comparator the result is inverted.
- Any other type with nested `filters` combines them with its `operator`
  (`and` when absent).

Comparators: `=`, `!=`, `>`, `>=`, `<`, `<=`, `exist`, `!exist`, `contain`,
`!contain`, `startWith`, `!startWith`, `endWith`, `!endWith`. Positive
comparators pass if any value matches; negated ones pass only if no value
matches. On `appVersion` and `platformVersion` the ordering comparators use
version comparison. `AudienceOperator.evaluate` treats an empty `and` as
passing and an empty `or` as failing.

`compile_filter_values(values)` checks that all values share one type (bool,
string or number) and returns them converted; it raises `ValueError` otherwise.

## Versions

- `version_compare(v1, v2)` compares the first version-like run in each string
  (`1.2.3` in `v1.2.3-beta`), padding missing parts with zeros. It returns
  `1.0`, `-1.0` or `0.0`, and `nan` when only one side holds a version.
- `version_compare_equality(v1, v2)` requires the same numeric parts, part
  count included, and identical prefix and suffix; dots directly after the
  version are ignored.
- `semver_compare(v1, v2, lexicographical=False, zero_extend=False)` compares
  dot-separated parts that must all be digits (digits followed by letters in
  lexicographical mode), else `nan`. In lexicographical mode valid versions
  always compare equal.

## Choosing a variation

```python
from flagbucket.target import Target

target = Target.from_dict({
    "_id": "target-1",
    "_audience": {"filters": {"operator": "and", "filters": [{"type": "all"}]}},
    "distribution": [
        {"_variation": "variation-a", "percentage": 0.5},
        {"_variation": "variation-b", "percentage": 0.5},
    ],
})

variation_id, is_randomized = target.decide_target_variation(0.42)
# ("variation-a", True)
```

`bucketingKey` defaults to `user_id`; `rollout` is optional. If no
distribution bucket covers the hash, `VariationDecisionError` is raised.

## Queueing events

```python
from flagbucket.event_queue import EventQueue, EventQueueOptions, get_event_queue, set_event_queue
from flagbucket.events import EvaluationReason, Event, EventType

sdk_key = "placeholder"
set_event_queue(sdk_key, EventQueue(sdk_key, platform_data, EventQueueOptions()))
queue = get_event_queue(sdk_key)

queue.queue_variable_evaluated_event(
    "my-variable", "feature-id", "variation-id", EvaluationReason.TARGETING_MATCH
)
queue.queue_event(user, Event(EventType.CUSTOM_EVENT, custom_type="purchase", value=19.99))

def bucketer(populated_user):
    return {"feature-id": "variation-id"}

queue.process_pending(bucketer)   # 2
```

Queued messages wait in bounded raw queues (`agg_queue_size` and
`user_queue_size`, 10000 each by default) until `process_pending` drains them.
Aggregate counts land in `queue.agg_event_queue`, keyed by event type,
variable key, feature id, variation id and evaluation reason; defaulted events
are counted under `"default"` for both feature and variation. User events are
grouped per user id in `queue.user_event_queue`, each with the feature
variations the bucketer returned; custom events also get the user's id. User
events whose bucketer raises are discarded by `process_pending`.

`EventQueueError` is raised when an aggregate event has an empty variable key,
or when a raw queue is full (the event is dropped and `events_dropped` goes
up). The queue methods return `False` without queueing when
`EventQueueOptions.is_event_logging_disabled` says so: custom events follow
`disable_custom_event_logging`, all others `disable_automatic_event_logging`.

`merge_agg_event_queue_keys(variable_keys, features)` pre-creates zero counts
for every variable, feature, variation and reason, given features as mappings
with `_id`, `key` and `variations`.

## What the package does not do

- It does not hash users into a bounded hash; `decide_target_variation` takes
  the hash as an argument.
- It holds no config store and does not evaluate variables or build bucketed
  configs; `process_user_event` and `process_pending` take a bucketer callable
  for that.
- It does not send events anywhere. The flush settings in
  `EventQueueOptions` are kept but not acted on, and there is no background
  worker: call `process_pending` yourself.

## Running the tests

```
pip install -e ".[test]"
pytest
```