from datetime import datetime, timedelta, timezone

import pytest

from flagbucket.user import PopulatedUser, User

PLATFORM = {"platform": "rust", "platformVersion": "1.0.0"}


def full_user_dict():
    return {
        "userId": "user-1",
        "email": "someone@example.com",
        "name": "Someone",
        "language": "en",
        "country": "CA",
        "appVersion": "1.2.3",
        "appBuild": "42",
        "customData": {"plan": "pro"},
        "privateCustomData": {"secretive": True},
        "deviceModel": "model",
        "lastSeenDate": "2023-05-01T12:00:00Z",
    }


def test_user_round_trip():
    data = full_user_dict()
    user = User.from_dict(data)
    assert user.to_dict() == data


def test_user_parses_last_seen_date_as_utc():
    user = User.from_dict(full_user_dict())
    assert user.last_seen_date == datetime(2023, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_user_last_seen_defaults_to_now():
    data = full_user_dict()
    del data["lastSeenDate"]
    before = datetime.now(timezone.utc)
    user = User.from_dict(data)
    after = datetime.now(timezone.utc)
    assert before <= user.last_seen_date <= after


@pytest.mark.parametrize("missing", ["userId", "email", "customData", "deviceModel"])
def test_user_missing_required_field(missing):
    data = full_user_dict()
    del data[missing]
    with pytest.raises(ValueError, match=missing):
        User.from_dict(data)


def test_user_wrong_type_rejected():
    data = full_user_dict()
    data["customData"] = ["not", "a", "map"]
    with pytest.raises(ValueError):
        User.from_dict(data)


def test_get_populated_user_copies_fields():
    user = User.from_dict(full_user_dict())
    created = datetime(2024, 1, 1, tzinfo=timezone.utc)
    populated = user.get_populated_user(PLATFORM, created)
    assert populated.user_id == user.user_id
    assert populated.email == user.email
    assert populated.app_version == user.app_version
    assert populated.custom_data == user.custom_data
    assert populated.private_custom_data == user.private_custom_data
    assert populated.last_seen_date == user.last_seen_date
    assert populated.platform_data == PLATFORM
    assert populated.created_date == created


def test_populated_custom_data_is_a_copy():
    user = User(user_id="u", custom_data={"a": 1})
    populated = user.get_populated_user(PLATFORM)
    populated.custom_data["b"] = 2
    assert user.custom_data == {"a": 1}


def test_from_user_merges_client_custom_data_without_overriding():
    user = User(user_id="u", custom_data={"a": 1}, private_custom_data={"p": 2})
    populated = PopulatedUser.from_user(user, PLATFORM, {"a": 10, "p": 20, "c": 30})
    assert populated.custom_data == {"a": 1, "c": 30}
    assert populated.private_custom_data == {"p": 2}


def test_from_user_sets_created_date_now():
    before = datetime.now(timezone.utc)
    populated = PopulatedUser.from_user(User(user_id="u"), PLATFORM, {})
    assert before <= populated.created_date <= before + timedelta(seconds=5)


def test_merge_client_custom_data_in_place():
    populated = User(user_id="u", private_custom_data={"k": "private"}).get_populated_user(PLATFORM)
    populated.merge_client_custom_data({"k": "client", "n": "new"})
    assert populated.custom_data == {"n": "new"}


def test_combined_custom_data_private_wins():
    populated = PopulatedUser(
        user_id="u", custom_data={"x": 1, "y": 2}, private_custom_data={"y": 3}
    )
    assert populated.combined_custom_data() == {"x": 1, "y": 3}


def test_combined_custom_data_empty():
    assert PopulatedUser(user_id="u").combined_custom_data() == {}


def test_populated_to_dict_keys_and_values():
    user = User.from_dict(full_user_dict())
    created = datetime(2024, 1, 1, tzinfo=timezone.utc)
    result = user.get_populated_user(PLATFORM, created).to_dict()
    assert result["userId"] == "user-1"
    assert result["platformData"] == PLATFORM
    assert result["lastSeenDate"] == "2023-05-01T12:00:00Z"
    assert result["createdDate"] == "2024-01-01T00:00:00Z"
    user_keys = set(full_user_dict())
    assert set(result) == user_keys | {"platformData", "createdDate"}