import pytest

from flagbucket.filters import (
    AudienceOperator,
    Filter,
    NoIdAudience,
    compile_filter_values,
)
from flagbucket.user import User


def make_user(**kwargs):
    user = User(
        user_id=kwargs.pop("user_id", "user-1"),
        email=kwargs.pop("email", "someone@example.com"),
        country=kwargs.pop("country", "CA"),
        app_version=kwargs.pop("app_version", "1.2.3"),
        custom_data=kwargs.pop("custom_data", {}),
        private_custom_data=kwargs.pop("private_custom_data", {}),
    )
    platform = kwargs.pop("platform_data", {"platform": "python", "platformVersion": "3.11.0"})
    return user.get_populated_user(platform)


def user_filter(sub_type, comparator, values):
    return Filter.from_dict(
        {"type": "user", "sub_type": sub_type, "comparator": comparator, "values": values}
    )


def test_all_passes_and_opt_in_fails():
    user = make_user()
    assert Filter.from_dict({"type": "all"}).evaluate({}, user, {})
    assert not Filter.from_dict({"type": "optIn"}).evaluate({}, user, {})


def test_equal_and_not_equal_on_user_id():
    user = make_user()
    assert user_filter("user_id", "=", ["other", "user-1"]).evaluate({}, user, {})
    assert not user_filter("user_id", "!=", ["other", "user-1"]).evaluate({}, user, {})
    assert user_filter("user_id", "!=", ["other"]).evaluate({}, user, {})


def test_string_comparators():
    user = make_user()
    assert user_filter("email", "contain", ["@example"]).evaluate({}, user, {})
    assert user_filter("email", "startWith", ["some"]).evaluate({}, user, {})
    assert user_filter("email", "endWith", [".com"]).evaluate({}, user, {})
    assert not user_filter("email", "!endWith", [".com"]).evaluate({}, user, {})
    assert user_filter("email", "!contain", ["nothere"]).evaluate({}, user, {})


def test_empty_filter_string_never_matches_contain():
    user = make_user()
    assert not user_filter("email", "contain", [""]).evaluate({}, user, {})
    assert user_filter("email", "!contain", [""]).evaluate({}, user, {})


def test_empty_values_fail():
    assert not user_filter("email", "=", []).evaluate({}, make_user(), {})


def test_exist_and_not_exist():
    user = make_user(email="")
    assert not user_filter("email", "exist", []).evaluate({}, user, {})
    assert user_filter("email", "!exist", []).evaluate({}, user, {})
    assert user_filter("country", "exist", []).evaluate({}, user, {})


def test_custom_data_lookup_order_and_missing_key():
    user = make_user(custom_data={"plan": "gold"}, private_custom_data={"tier": 3})
    assert user_filter("customData", "=", ["plan", "gold"]).evaluate({}, user, {})
    assert user_filter("customData", "exist", ["tier"]).evaluate({}, user, {})
    assert user_filter("customData", "exist", ["region"]).evaluate({}, user, {"region": "eu"})
    assert user_filter("customData", "!=", ["missing", "x"]).evaluate({}, user, {})
    assert not user_filter("customData", "=", ["missing", "x"]).evaluate({}, user, {})


def test_numeric_comparison_on_custom_data():
    user = make_user(custom_data={"age": 30})
    assert user_filter("customData", ">", ["age", 18]).evaluate({}, user, {})
    assert not user_filter("customData", "<", ["age", 18]).evaluate({}, user, {})


def test_json_equality_distinguishes_bool_and_number():
    user = make_user(custom_data={"flag": True})
    assert not user_filter("customData", "=", ["flag", 1]).evaluate({}, user, {})
    assert user_filter("customData", "=", ["flag", True]).evaluate({}, user, {})


def test_app_version_comparisons():
    user = make_user(app_version="1.2.3")
    assert user_filter("appVersion", ">", ["1.2.0"]).evaluate({}, user, {})
    assert user_filter("appVersion", "=", ["1.2.3"]).evaluate({}, user, {})
    assert not user_filter("appVersion", "!=", ["1.2.3"]).evaluate({}, user, {})
    assert user_filter("appVersion", "<=", ["2"]).evaluate({}, user, {})


def test_platform_version_from_platform_data():
    user = make_user()
    assert user_filter("platformVersion", ">=", ["3.10"]).evaluate({}, user, {})
    assert user_filter("platform", "=", ["python"]).evaluate({}, user, {})


def test_audience_match_and_inversion():
    audiences = {
        "aud": NoIdAudience.from_dict({"filters": {"operator": "and", "filters": [{"type": "all"}]}})
    }
    user = make_user()
    match = Filter.from_dict({"type": "audienceMatch", "_audiences": ["aud"]})
    negated = Filter.from_dict(
        {"type": "audienceMatch", "comparator": "!=", "_audiences": ["aud"]}
    )
    unknown = Filter.from_dict({"type": "audienceMatch", "_audiences": ["nope"]})
    assert match.evaluate(audiences, user, {})
    assert not negated.evaluate(audiences, user, {})
    assert not unknown.evaluate(audiences, user, {})


def test_nested_filters_use_operator():
    user = make_user()
    nested_or = Filter.from_dict(
        {"operator": "or", "filters": [{"type": "optIn"}, {"type": "all"}]}
    )
    nested_and = Filter.from_dict({"filters": [{"type": "optIn"}, {"type": "all"}]})
    assert nested_or.evaluate({}, user, {})
    assert not nested_and.evaluate({}, user, {})
    assert not Filter.from_dict({"type": "other"}).evaluate({}, user, {})


def test_audience_operator_empty_filters():
    user = make_user()
    assert AudienceOperator(operator="and").evaluate({}, user, {})
    assert not AudienceOperator(operator="or").evaluate({}, user, {})
    assert not AudienceOperator(operator="xor").evaluate({}, user, {})


def test_from_dict_errors():
    with pytest.raises(ValueError):
        Filter.from_dict({"type": "user", "values": "notalist"})
    with pytest.raises(ValueError):
        AudienceOperator.from_dict({"filters": []})
    with pytest.raises(ValueError):
        NoIdAudience.from_dict({})


def test_from_dict_reads_fields():
    f = Filter.from_dict({"type": "user", "sub_type": "email", "values": ["a"]})
    assert (f.filter_type, f.sub_type, f.values, f.comparator) == ("user", "email", ["a"], None)


def test_compile_filter_values():
    assert compile_filter_values([]) == []
    assert compile_filter_values([True, False]) == [True, False]
    assert compile_filter_values(["a", "b"]) == ["a", "b"]
    assert compile_filter_values([1, 2.5]) == [1.0, 2.5]
    with pytest.raises(ValueError):
        compile_filter_values(["a", 1])
    with pytest.raises(ValueError):
        compile_filter_values([None])