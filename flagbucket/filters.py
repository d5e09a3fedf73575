"""Audience filters: user, audience-match and nested filters with and/or operators."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from flagbucket.user import PopulatedUser
from flagbucket.versions import version_compare, version_compare_equality

TYPE_ALL = "all"
TYPE_USER = "user"
TYPE_OPT_IN = "optIn"
TYPE_AUDIENCE_MATCH = "audienceMatch"

SUB_TYPE_USER_ID = "user_id"
SUB_TYPE_EMAIL = "email"
SUB_TYPE_IP = "ip"
SUB_TYPE_COUNTRY = "country"
SUB_TYPE_PLATFORM = "platform"
SUB_TYPE_PLATFORM_VERSION = "platformVersion"
SUB_TYPE_APP_VERSION = "appVersion"
SUB_TYPE_DEVICE_MODEL = "deviceModel"
SUB_TYPE_CUSTOM_DATA = "customData"

COMPARATOR_EQUAL = "="
COMPARATOR_NOT_EQUAL = "!="
COMPARATOR_GREATER = ">"
COMPARATOR_GREATER_EQUAL = ">="
COMPARATOR_LESS = "<"
COMPARATOR_LESS_EQUAL = "<="
COMPARATOR_EXIST = "exist"
COMPARATOR_NOT_EXIST = "!exist"
COMPARATOR_CONTAIN = "contain"
COMPARATOR_NOT_CONTAIN = "!contain"
COMPARATOR_START_WITH = "startWith"
COMPARATOR_NOT_START_WITH = "!startWith"
COMPARATOR_END_WITH = "endWith"
COMPARATOR_NOT_END_WITH = "!endWith"

OPERATOR_AND = "and"
OPERATOR_OR = "or"

_MISSING = object()
_VERSION_SUB_TYPES = (SUB_TYPE_APP_VERSION, SUB_TYPE_PLATFORM_VERSION)


class FilterType(str, Enum):
    """Top-level kinds of filter."""

    ALL = "all"
    USER = "user"
    OPT_IN = "optIn"
    AUDIENCE_MATCH = "audienceMatch"


class FilterSubType(str, Enum):
    """The user attribute a user filter looks at."""

    USER_ID = "user_id"
    EMAIL = "email"
    IP = "ip"
    COUNTRY = "country"
    PLATFORM = "platform"
    PLATFORM_VERSION = "platformVersion"
    APP_VERSION = "appVersion"
    DEVICE_MODEL = "deviceModel"
    CUSTOM_DATA = "customData"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _json_equal(left: Any, right: Any) -> bool:
    """JSON value equality: booleans are not numbers, integers are not floats."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if _is_number(left) or _is_number(right):
        if not (_is_number(left) and _is_number(right)):
            return False
        if isinstance(left, int) != isinstance(right, int):
            return False
        return left == right
    if isinstance(left, list) or isinstance(right, list):
        return (
            isinstance(left, list)
            and isinstance(right, list)
            and len(left) == len(right)
            and all(_json_equal(a, b) for a, b in zip(left, right))
        )
    if isinstance(left, Mapping) or isinstance(right, Mapping):
        return (
            isinstance(left, Mapping)
            and isinstance(right, Mapping)
            and left.keys() == right.keys()
            and all(_json_equal(left[k], right[k]) for k in left)
        )
    return type(left) is type(right) and left == right


def _optional_str(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"field `{key}` must be a string")
    return value


def _list_field(data: Mapping[str, Any], key: str) -> list[Any]:
    if key not in data:
        return []
    value = data[key]
    if not isinstance(value, list):
        raise ValueError(f"field `{key}` must be an array")
    return value


def _platform_value(user: PopulatedUser, *keys: str) -> str:
    for key in keys:
        if key in user.platform_data:
            value = user.platform_data[key]
            return value if isinstance(value, str) else str(value)
    return ""


@dataclass
class Filter:
    """One filter of an audience: a user filter, an audience match or a nested group."""

    filter_type: str = ""
    sub_type: str | None = None
    comparator: str | None = None
    values: list[Any] = field(default_factory=list)
    filters: list[Filter] = field(default_factory=list)
    operator: str | None = None
    audiences: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Filter:
        """Build a filter from its JSON mapping; every field is optional."""
        if not isinstance(data, Mapping):
            raise ValueError("filter must be an object")
        filter_type = data.get("type", "")
        if not isinstance(filter_type, str):
            raise ValueError("field `type` must be a string")
        audiences = _list_field(data, "_audiences")
        if not all(isinstance(a, str) for a in audiences):
            raise ValueError("field `_audiences` must hold strings")
        return cls(
            filter_type=filter_type,
            sub_type=_optional_str(data, "sub_type"),
            comparator=_optional_str(data, "comparator"),
            values=list(_list_field(data, "values")),
            filters=[cls.from_dict(f) for f in _list_field(data, "filters")],
            operator=_optional_str(data, "operator"),
            audiences=list(audiences),
        )

    def evaluate(
        self,
        audiences: Mapping[str, NoIdAudience],
        user: PopulatedUser,
        client_custom_data: Mapping[str, Any],
    ) -> bool:
        """Whether the user passes this filter."""
        if self.filter_type == TYPE_ALL:
            return True
        if self.filter_type == TYPE_USER:
            return self._evaluate_user_filter(user, client_custom_data)
        if self.filter_type == TYPE_OPT_IN:
            return False
        if self.filter_type == TYPE_AUDIENCE_MATCH:
            return self._evaluate_audience_match(audiences, user, client_custom_data)
        if self.filters:
            operator = self.operator if self.operator is not None else OPERATOR_AND
            return self._evaluate_nested(operator, audiences, user, client_custom_data)
        return False

    def _evaluate_user_filter(
        self, user: PopulatedUser, client_custom_data: Mapping[str, Any]
    ) -> bool:
        if self.sub_type is None:
            return False
        comparator = self.comparator if self.comparator is not None else COMPARATOR_EQUAL

        if comparator in (COMPARATOR_EXIST, COMPARATOR_NOT_EXIST):
            value = self._user_value(self.sub_type, user, client_custom_data)
            exists = value is not _MISSING and value != "" if isinstance(value, str) else value is not _MISSING
            return exists if comparator == COMPARATOR_EXIST else not exists

        if not self.values:
            return False

        value = self._user_value(self.sub_type, user, client_custom_data)
        if value is _MISSING:
            return comparator == COMPARATOR_NOT_EQUAL
        return self._compare_values(value, comparator)

    def _user_value(
        self, sub_type: str, user: PopulatedUser, client_custom_data: Mapping[str, Any]
    ) -> Any:
        if sub_type == SUB_TYPE_USER_ID:
            return user.user_id
        if sub_type == SUB_TYPE_EMAIL:
            return user.email
        if sub_type == SUB_TYPE_COUNTRY:
            return user.country
        if sub_type == SUB_TYPE_PLATFORM:
            return _platform_value(user, "platform")
        if sub_type == SUB_TYPE_PLATFORM_VERSION:
            return _platform_value(user, "platformVersion", "platform_version")
        if sub_type == SUB_TYPE_APP_VERSION:
            return user.app_version
        if sub_type == SUB_TYPE_DEVICE_MODEL:
            return user.device_model
        if sub_type == SUB_TYPE_CUSTOM_DATA:
            if not self.values or not isinstance(self.values[0], str):
                return _MISSING
            key = self.values[0]
            for source in (user.custom_data, client_custom_data, user.private_custom_data):
                if key in source:
                    return source[key]
            return _MISSING
        return _MISSING

    def _string_pairs(self, user_value: Any):
        if not isinstance(user_value, str):
            return
        for filter_value in self.values:
            if isinstance(filter_value, str) and filter_value:
                yield user_value, filter_value

    def _compare_version_strings(self, user_version: str, comparator: str) -> bool:
        versions = [v for v in self.values if isinstance(v, str)]
        if comparator == COMPARATOR_NOT_EQUAL:
            return not any(version_compare_equality(user_version, v) for v in versions)
        for filter_version in versions:
            if comparator == COMPARATOR_EQUAL:
                if version_compare_equality(user_version, filter_version):
                    return True
                continue
            result = version_compare(user_version, filter_version)
            if comparator == COMPARATOR_GREATER:
                matched = result > 0.0
            elif comparator == COMPARATOR_GREATER_EQUAL:
                matched = result >= 0.0
            elif comparator == COMPARATOR_LESS:
                matched = result < 0.0
            elif comparator == COMPARATOR_LESS_EQUAL:
                matched = result <= 0.0
            else:
                matched = False
            if matched:
                return True
        return False

    def _compare_values(self, user_value: Any, comparator: str) -> bool:
        if self.sub_type in _VERSION_SUB_TYPES and isinstance(user_value, str):
            return self._compare_version_strings(user_value, comparator)

        if comparator == COMPARATOR_NOT_EQUAL:
            return not any(_json_equal(user_value, v) for v in self.values)
        if comparator == COMPARATOR_NOT_CONTAIN:
            return not any(f in u for u, f in self._string_pairs(user_value))
        if comparator == COMPARATOR_NOT_START_WITH:
            return not any(u.startswith(f) for u, f in self._string_pairs(user_value))
        if comparator == COMPARATOR_NOT_END_WITH:
            return not any(u.endswith(f) for u, f in self._string_pairs(user_value))

        if comparator == COMPARATOR_EQUAL:
            return any(_json_equal(user_value, v) for v in self.values)
        if comparator == COMPARATOR_CONTAIN:
            return any(f in u for u, f in self._string_pairs(user_value))
        if comparator == COMPARATOR_START_WITH:
            return any(u.startswith(f) for u, f in self._string_pairs(user_value))
        if comparator == COMPARATOR_END_WITH:
            return any(u.endswith(f) for u, f in self._string_pairs(user_value))

        numeric = {
            COMPARATOR_GREATER: lambda a, b: a > b,
            COMPARATOR_GREATER_EQUAL: lambda a, b: a >= b,
            COMPARATOR_LESS: lambda a, b: a < b,
            COMPARATOR_LESS_EQUAL: lambda a, b: a <= b,
        }.get(comparator)
        if numeric is not None:
            if not _is_number(user_value):
                return False
            return any(
                numeric(float(user_value), float(v)) for v in self.values if _is_number(v)
            )
        if comparator == COMPARATOR_EXIST:
            return True
        return False

    def _evaluate_audience_match(
        self,
        audiences: Mapping[str, NoIdAudience],
        user: PopulatedUser,
        client_custom_data: Mapping[str, Any],
    ) -> bool:
        comparator = self.comparator if self.comparator is not None else COMPARATOR_EQUAL
        matches_any = any(
            audiences[audience_id].filters.evaluate(audiences, user, client_custom_data)
            for audience_id in self.audiences
            if audience_id in audiences
        )
        return not matches_any if comparator == COMPARATOR_NOT_EQUAL else matches_any

    def _evaluate_nested(
        self,
        operator: str,
        audiences: Mapping[str, NoIdAudience],
        user: PopulatedUser,
        client_custom_data: Mapping[str, Any],
    ) -> bool:
        if not self.filters:
            return True
        return _combine(operator, self.filters, audiences, user, client_custom_data)


def _combine(
    operator: str,
    filters: list[Filter],
    audiences: Mapping[str, NoIdAudience],
    user: PopulatedUser,
    client_custom_data: Mapping[str, Any],
) -> bool:
    results = (f.evaluate(audiences, user, client_custom_data) for f in filters)
    if operator == OPERATOR_AND:
        return all(results)
    if operator == OPERATOR_OR:
        return any(results)
    return False


@dataclass
class AudienceOperator:
    """An and/or combination of filters."""

    operator: str
    filters: list[Filter] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AudienceOperator:
        """Build from a mapping holding `operator` and `filters`, both required."""
        if not isinstance(data, Mapping):
            raise ValueError("audience operator must be an object")
        if "operator" not in data or not isinstance(data["operator"], str):
            raise ValueError("field `operator` must be a string")
        if "filters" not in data or not isinstance(data["filters"], list):
            raise ValueError("field `filters` must be an array")
        return cls(
            operator=data["operator"],
            filters=[Filter.from_dict(f) for f in data["filters"]],
        )

    def evaluate(
        self,
        audiences: Mapping[str, NoIdAudience],
        user: PopulatedUser,
        client_custom_data: Mapping[str, Any],
    ) -> bool:
        """Empty `and` passes, empty `or` fails; unknown operators fail."""
        if not self.filters:
            return self.operator == OPERATOR_AND
        return _combine(self.operator, self.filters, audiences, user, client_custom_data)


@dataclass
class NoIdAudience:
    """An audience definition without its id."""

    filters: AudienceOperator

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NoIdAudience:
        """Build from a mapping holding `filters`."""
        if not isinstance(data, Mapping) or "filters" not in data:
            raise ValueError("missing field `filters`")
        return cls(filters=AudienceOperator.from_dict(data["filters"]))


def compile_filter_values(values: list[Any]) -> list[Any]:
    """Check that filter values share one type and return them as bools, strings or floats."""
    if not values:
        return []
    first = values[0]
    if isinstance(first, bool):
        kind, check, convert = "bool", lambda v: isinstance(v, bool), bool
    elif isinstance(first, str):
        kind, check, convert = "string", lambda v: isinstance(v, str), str
    elif _is_number(first):
        kind, check, convert = "number", _is_number, float
    else:
        raise ValueError(
            f"Filter values must be of type bool, string, or number. Got: {first!r}"
        )
    compiled = []
    for value in values:
        if not check(value):
            raise ValueError(
                "Filter values must be all of the same type. "
                f"Expected: {kind}, got: {value!r}"
            )
        compiled.append(convert(value))
    return compiled