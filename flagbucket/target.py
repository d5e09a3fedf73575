"""Feature targets: an audience, an optional rollout and a variation distribution."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from flagbucket.filters import NoIdAudience

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class VariationDecisionError(Exception):
    """No distribution bucket covers the given hash."""


def _parse_date(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"invalid date-time: {value!r}") from exc
    else:
        raise ValueError(f"expected a date-time string, got {value!r}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _require(data: Mapping[str, Any], key: str) -> Any:
    if not isinstance(data, Mapping):
        raise ValueError("expected an object")
    if key not in data:
        raise ValueError(f"missing field `{key}`")
    return data[key]


def _require_str(data: Mapping[str, Any], key: str) -> str:
    value = _require(data, key)
    if not isinstance(value, str):
        raise ValueError(f"field `{key}` must be a string")
    return value


def _as_float(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"field `{key}` must be a number")
    return float(value)


@dataclass
class TargetDistribution:
    """The share of a target's users that receive one variation."""

    variation: str
    percentage: float

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TargetDistribution:
        return cls(
            variation=_require_str(data, "_variation"),
            percentage=_as_float(_require(data, "percentage"), "percentage"),
        )


@dataclass
class RolloutStage:
    """One step of a gradual rollout."""

    stage_type: str
    date: datetime
    percentage: float

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RolloutStage:
        return cls(
            stage_type=_require_str(data, "type"),
            date=_parse_date(_require(data, "date")),
            percentage=_as_float(_require(data, "percentage"), "percentage"),
        )


@dataclass
class Rollout:
    """A rollout schedule for a target."""

    rollout_type: str
    start_percentage: float = 0.0
    start_date: datetime = _EPOCH
    stages: list[RolloutStage] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Rollout:
        stages = data.get("stages", []) if isinstance(data, Mapping) else []
        if not isinstance(stages, list):
            raise ValueError("field `stages` must be an array")
        return cls(
            rollout_type=_require_str(data, "type"),
            start_percentage=_as_float(data.get("startPercentage", 0.0), "startPercentage"),
            start_date=_parse_date(data["startDate"]) if "startDate" in data else _EPOCH,
            stages=[RolloutStage.from_dict(s) for s in stages],
        )


@dataclass
class Target:
    """A targeting rule of a feature."""

    id: str
    audience: NoIdAudience
    distribution: list[TargetDistribution]
    rollout: Rollout | None = None
    bucketing_key: str = "user_id"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Target:
        """Build a target from its JSON mapping."""
        distribution = _require(data, "distribution")
        if not isinstance(distribution, list):
            raise ValueError("field `distribution` must be an array")
        rollout = data.get("rollout")
        bucketing_key = data.get("bucketingKey", "user_id")
        if not isinstance(bucketing_key, str):
            raise ValueError("field `bucketingKey` must be a string")
        return cls(
            id=_require_str(data, "_id"),
            audience=NoIdAudience.from_dict(_require(data, "_audience")),
            distribution=[TargetDistribution.from_dict(d) for d in distribution],
            rollout=Rollout.from_dict(rollout) if rollout is not None else None,
            bucketing_key=bucketing_key,
        )

    def decide_target_variation(self, bounded_hash: float) -> tuple[str, bool]:
        """Pick the variation whose cumulative share covers the hash.

        Returns the variation id and whether the target splits users
        between more than one variation.
        """
        is_randomized = len(self.distribution) > 1
        cumulative = 0.0
        for entry in self.distribution:
            cumulative += entry.percentage
            if bounded_hash >= 0.0 and (
                bounded_hash < cumulative or (cumulative == 1.0 and bounded_hash == 1.0)
            ):
                return entry.variation, is_randomized
        raise VariationDecisionError("Failed to decide target variation")