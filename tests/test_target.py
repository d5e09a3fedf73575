from datetime import datetime, timezone

import pytest

from flagbucket.target import Rollout, Target, VariationDecisionError

AUDIENCE = {"filters": {"operator": "and", "filters": [{"type": "all"}]}}


def make_target(distribution, **extra):
    data = {"_id": "target-1", "_audience": AUDIENCE, "distribution": distribution}
    data.update(extra)
    return Target.from_dict(data)


def test_from_dict_defaults():
    target = make_target([{"_variation": "var-a", "percentage": 1}])
    assert target.id == "target-1"
    assert target.bucketing_key == "user_id"
    assert target.rollout is None
    assert target.distribution[0].variation == "var-a"
    assert target.audience.filters.operator == "and"


def test_from_dict_reads_bucketing_key():
    target = make_target([], bucketingKey="email")
    assert target.bucketing_key == "email"


def test_split_distribution():
    target = make_target(
        [{"_variation": "var-a", "percentage": 0.5}, {"_variation": "var-b", "percentage": 0.5}]
    )
    assert target.decide_target_variation(0.25) == ("var-a", True)
    assert target.decide_target_variation(0.75) == ("var-b", True)
    assert target.decide_target_variation(1.0) == ("var-b", True)


def test_single_distribution_is_not_randomized():
    target = make_target([{"_variation": "only", "percentage": 1.0}])
    assert target.decide_target_variation(0.5) == ("only", False)


def test_uncovered_hash_raises():
    target = make_target([{"_variation": "var-a", "percentage": 0.5}])
    with pytest.raises(VariationDecisionError):
        target.decide_target_variation(0.9)
    with pytest.raises(VariationDecisionError):
        target.decide_target_variation(-0.1)


def test_rollout_parsing():
    rollout = Rollout.from_dict(
        {
            "type": "gradual",
            "startPercentage": 0.25,
            "startDate": "2024-01-01T00:00:00Z",
            "stages": [{"type": "linear", "date": "2024-02-01T00:00:00Z", "percentage": 1}],
        }
    )
    assert rollout.rollout_type == "gradual"
    assert rollout.start_percentage == 0.25
    assert rollout.start_date == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert rollout.stages[0].date == datetime(2024, 2, 1, tzinfo=timezone.utc)
    assert rollout.stages[0].percentage == 1.0


def test_rollout_defaults_to_epoch():
    rollout = Rollout.from_dict({"type": "schedule"})
    assert rollout.start_date == datetime(1970, 1, 1, tzinfo=timezone.utc)
    assert rollout.stages == []


def test_missing_required_fields_raise():
    with pytest.raises(ValueError):
        Target.from_dict({"_audience": AUDIENCE, "distribution": []})
    with pytest.raises(ValueError):
        make_target([{"percentage": 0.5}])
    with pytest.raises(ValueError):
        Rollout.from_dict({"startPercentage": 0.1})