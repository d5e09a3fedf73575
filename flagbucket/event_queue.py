"""Per-SDK-key event queues: raw event intake, aggregation and the queue registry."""

from __future__ import annotations

import queue
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from flagbucket.events import (
    AggEventQueueRawMessage,
    EvaluationReason,
    Event,
    EventType,
    UserEventData,
    UserEventsBatchRecord,
)
from flagbucket.user import PopulatedUser, User

DEFAULT_RAW_QUEUE_SIZE = 10000
_DEFAULT_KEY = "default"

Bucketer = Callable[[PopulatedUser], Mapping[str, str]]
AggregateQueue = dict[EventType, dict[str, dict[str, dict[str, dict[EvaluationReason, int]]]]]


class EventQueueError(Exception):
    """An event could not be queued."""


@dataclass
class EventQueueOptions:
    """Settings that control how events are queued and flushed."""

    flush_events_interval: timedelta = timedelta(seconds=60)
    disable_automatic_event_logging: bool = False
    disable_custom_event_logging: bool = False
    max_event_queue_size: int = 10000
    max_user_event_queue_size: int = 1000
    flush_events_batch_size: int = 100
    flush_events_queue_size: int = 1000
    events_api_base_uri: str = "https://events.example.com"

    def is_event_logging_disabled(self, event_type: EventType) -> bool:
        """Custom events follow the custom switch; every other type the automatic one."""
        if event_type == EventType.CUSTOM_EVENT:
            return self.disable_custom_event_logging
        return self.disable_automatic_event_logging


def _feature_parts(feature: Mapping[str, Any]) -> tuple[str, str, list[str]]:
    """Id, key and variation ids of a feature in its config mapping form."""
    variations = feature.get("variations", [])
    return (
        feature["_id"],
        feature.get("key", feature["_id"]),
        [variation["_id"] for variation in variations],
    )


class EventQueue:
    """Collects aggregate and user events for one SDK key."""

    def __init__(
        self,
        sdk_key: str,
        platform_data: Mapping[str, Any],
        options: EventQueueOptions | None = None,
        *,
        client_custom_data: Mapping[str, Any] | None = None,
        agg_queue_size: int = DEFAULT_RAW_QUEUE_SIZE,
        user_queue_size: int = DEFAULT_RAW_QUEUE_SIZE,
    ) -> None:
        self.sdk_key = sdk_key
        self.platform_data = platform_data
        self.options = options if options is not None else EventQueueOptions()
        self.client_custom_data: dict[str, Any] = dict(client_custom_data or {})
        self._agg_raw: queue.Queue[AggEventQueueRawMessage] = queue.Queue(agg_queue_size)
        self._user_raw: queue.Queue[UserEventData] = queue.Queue(user_queue_size)
        self.agg_event_queue: AggregateQueue = {}
        self.user_event_queue: dict[str, UserEventsBatchRecord] = {}
        self.user_event_queue_count = 0
        self.events_flushed = 0
        self.events_dropped = 0
        self.events_reported = 0
        self._lock = threading.Lock()

    def queue_variable_evaluated_event(
        self,
        variable_key: str,
        feature_id: str,
        variation_id: str,
        eval_reason: EvaluationReason,
    ) -> bool:
        """Queue an evaluation count; False if automatic logging is disabled."""
        return self._queue_aggregate_event(
            variable_key,
            feature_id,
            variation_id,
            EventType.AGGREGATE_VARIABLE_EVALUATED,
            eval_reason,
        )

    def queue_variable_defaulted_event(
        self, variable_key: str, feature_id: str, variation_id: str
    ) -> bool:
        """Queue a defaulted count; False if automatic logging is disabled."""
        return self._queue_aggregate_event(
            variable_key,
            feature_id,
            variation_id,
            EventType.AGGREGATE_VARIABLE_DEFAULTED,
            EvaluationReason.DEFAULT,
        )

    def _queue_aggregate_event(
        self,
        variable_key: str,
        feature_id: str,
        variation_id: str,
        event_type: EventType,
        eval_reason: EvaluationReason,
    ) -> bool:
        if self.options.is_event_logging_disabled(event_type):
            return False
        if not variable_key:
            raise EventQueueError("a variable key is required for aggregate events")
        if event_type == EventType.AGGREGATE_VARIABLE_DEFAULTED:
            eval_reason = EvaluationReason.DEFAULT
        message = AggEventQueueRawMessage(
            event_type=event_type,
            variable_key=variable_key,
            feature_id=feature_id,
            variation_id=variation_id,
            eval_metadata={eval_reason: 1},
        )
        self._put(self._agg_raw, message)
        return True

    def queue_event(self, user: User, event: Event) -> bool:
        """Queue a user event for later bucketing."""
        self._put(self._user_raw, UserEventData(event=event, user=user))
        return True

    def _put(self, raw_queue: queue.Queue, item: Any) -> None:
        try:
            raw_queue.put_nowait(item)
        except queue.Full:
            with self._lock:
                self.events_dropped += 1
            raise EventQueueError("dropping event, queue is full") from None

    def merge_agg_event_queue_keys(
        self, variable_keys: Iterable[str], features: Iterable[Mapping[str, Any]]
    ) -> None:
        """Make sure every variable/feature/variation/reason path exists in the aggregate queue.

        Features are mappings in config form: `_id`, `key` and `variations`
        (each with an `_id`).
        """
        variable_keys = list(variable_keys)
        feature_parts = [_feature_parts(feature) for feature in features]
        with self._lock:
            for event_type in (
                EventType.AGGREGATE_VARIABLE_DEFAULTED,
                EventType.AGGREGATE_VARIABLE_EVALUATED,
            ):
                by_variable = self.agg_event_queue.setdefault(event_type, {})
                for variable_key in variable_keys:
                    by_feature = by_variable.setdefault(variable_key, {})
                    for feature_id, feature_key, variation_ids in feature_parts:
                        if feature_key not in by_feature:
                            by_feature[feature_id] = {}
                        by_variation = by_feature.setdefault(feature_id, {})
                        for variation_id in variation_ids:
                            reasons = by_variation.setdefault(variation_id, {})
                            for reason in EvaluationReason:
                                reasons.setdefault(reason, 0)

    def process_aggregate_event(self, message: AggEventQueueRawMessage) -> None:
        """Fold an aggregate message's counts into the aggregate queue."""
        if message.event_type == EventType.AGGREGATE_VARIABLE_EVALUATED:
            feature_id, variation_id = message.feature_id, message.variation_id
        else:
            feature_id = variation_id = _DEFAULT_KEY
        with self._lock:
            reasons = (
                self.agg_event_queue.setdefault(message.event_type, {})
                .setdefault(message.variable_key, {})
                .setdefault(feature_id, {})
                .setdefault(variation_id, {})
            )
            for reason, count in message.eval_metadata.items():
                reasons[reason] = reasons.get(reason, 0) + count

    def process_user_event(self, data: UserEventData, bucketer: Bucketer) -> bool:
        """Populate the user, attach its feature variations and add the event to its batch.

        The bucketer maps a populated user to its feature-to-variation map;
        any error it raises propagates.
        """
        populated = PopulatedUser.from_user(
            data.user, self.platform_data, self.client_custom_data
        )
        event = data.event
        event.feature_vars = dict(bucketer(populated))
        if event.event_type == EventType.CUSTOM_EVENT:
            event.user_id = data.user.user_id
        with self._lock:
            record = self.user_event_queue.setdefault(
                data.user.user_id, UserEventsBatchRecord(user=populated)
            )
            record.events.append(event)
            self.user_event_queue_count += 1
        return True

    def process_pending(self, bucketer: Bucketer) -> int:
        """Drain both raw queues and return how many messages were taken.

        User events whose bucketing fails are discarded.
        """
        processed = 0
        while True:
            try:
                data = self._user_raw.get_nowait()
            except queue.Empty:
                break
            processed += 1
            try:
                self.process_user_event(data, bucketer)
            except Exception:
                continue
        while True:
            try:
                message = self._agg_raw.get_nowait()
            except queue.Empty:
                break
            processed += 1
            self.process_aggregate_event(message)
        return processed


_EVENT_QUEUES: dict[str, EventQueue] = {}
_REGISTRY_LOCK = threading.Lock()


def get_event_queue(sdk_key: str) -> EventQueue | None:
    """The queue registered for an SDK key, or None."""
    with _REGISTRY_LOCK:
        return _EVENT_QUEUES.get(sdk_key)


def set_event_queue(sdk_key: str, queue: EventQueue) -> None:
    """Register a queue for an SDK key, replacing any previous one."""
    with _REGISTRY_LOCK:
        _EVENT_QUEUES[sdk_key] = queue


def has_event_queue(sdk_key: str) -> bool:
    """Whether a queue is registered for an SDK key."""
    with _REGISTRY_LOCK:
        return sdk_key in _EVENT_QUEUES