"""Event types, evaluation reasons and the records that flow through the event queue."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from flagbucket.user import PopulatedUser, User


class EventType(Enum):
    """Kinds of events that can be queued."""

    AGGREGATE_VARIABLE_EVALUATED = "AggregateVariableEvaluated"
    AGGREGATE_VARIABLE_DEFAULTED = "AggregateVariableDefaulted"
    VARIABLE_EVALUATED = "VariableEvaluated"
    VARIABLE_DEFAULTED = "VariableDefaulted"
    SDK_CONFIG = "SDKConfig"
    CUSTOM_EVENT = "CustomEvent"


class EvaluationReason(str, Enum):
    """Why a variable evaluated to the value it did."""

    TARGETING_MATCH = "TARGETING_MATCH"
    SPLIT = "SPLIT"
    DEFAULT = "DEFAULT"
    DISABLED = "DISABLED"
    ERROR = "ERROR"

    def __str__(self) -> str:
        return self.value


class DefaultReason(str, Enum):
    """Why a variable fell back to its default value."""

    MISSING_CONFIG = "Missing Config"
    MISSING_VARIABLE = "Missing Variable"
    MISSING_FEATURE = "Missing Feature"
    MISSING_VARIATION = "Missing Variation"
    MISSING_VARIABLE_FOR_VARIATION = "Missing Variable for Variation"
    USER_NOT_IN_ROLLOUT = "User Not in Rollout"
    USER_NOT_TARGETED = "User Not Targeted"
    INVALID_VARIABLE_TYPE = "Invalid Variable Type"
    VARIABLE_TYPE_MISMATCH = "Variable Type Mismatch"
    UNKNOWN = "Unknown"
    ERROR = "Error"
    NOT_DEFAULTED = ""

    def __str__(self) -> str:
        return self.value


@dataclass
class EvalDetails:
    """Evaluation reason plus optional detail text and target id."""

    reason: EvaluationReason
    details: str | None = None
    target_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialise, leaving out fields that are not set."""
        result: dict[str, Any] = {"reason": self.reason.value}
        if self.details is not None:
            result["details"] = self.details
        if self.target_id is not None:
            result["target_id"] = self.target_id
        return result


@dataclass
class Event:
    """A single user-level event."""

    event_type: EventType
    target: str = ""
    custom_type: str = ""
    user_id: str = ""
    client_date: float = field(default_factory=time.monotonic)
    value: float = 0.0
    feature_vars: dict[str, str] = field(default_factory=dict)
    meta_data: dict[str, Any] = field(default_factory=dict)


@dataclass
class UserEventData:
    """An event together with the user that raised it."""

    event: Event
    user: User


@dataclass
class UserEventsBatchRecord:
    """The events queued for one populated user."""

    user: PopulatedUser
    events: list[Event] = field(default_factory=list)


@dataclass
class AggEventQueueRawMessage:
    """An aggregate evaluation count waiting to be folded into the queue."""

    event_type: EventType
    variable_key: str
    feature_id: str
    variation_id: str
    eval_metadata: dict[EvaluationReason, int] = field(default_factory=dict)