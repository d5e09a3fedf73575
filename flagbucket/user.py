"""Users as supplied by callers, and users populated with platform data."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

_USER_STRING_FIELDS = (
    ("user_id", "userId"),
    ("email", "email"),
    ("name", "name"),
    ("language", "language"),
    ("country", "country"),
    ("app_version", "appVersion"),
    ("app_build", "appBuild"),
    ("device_model", "deviceModel"),
)
_USER_MAP_FIELDS = (
    ("custom_data", "customData"),
    ("private_custom_data", "privateCustomData"),
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return _as_utc(value)
    if not isinstance(value, str):
        raise ValueError(f"expected a date-time string, got {value!r}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return _as_utc(datetime.fromisoformat(text))
    except ValueError as exc:
        raise ValueError(f"invalid date-time: {value!r}") from exc


def _format_datetime(value: datetime) -> str:
    return _as_utc(value).isoformat().replace("+00:00", "Z")


@dataclass
class User:
    """A user as identified by the calling application."""

    user_id: str
    email: str = ""
    name: str = ""
    language: str = ""
    country: str = ""
    app_version: str = ""
    app_build: str = ""
    custom_data: dict[str, Any] = field(default_factory=dict)
    private_custom_data: dict[str, Any] = field(default_factory=dict)
    device_model: str = ""
    last_seen_date: datetime = field(default_factory=_now)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> User:
        """Build a user from its camelCase mapping; every field but lastSeenDate is required."""
        if not isinstance(data, Mapping):
            raise ValueError("user data must be an object")
        kwargs: dict[str, Any] = {}
        for attr, key in _USER_STRING_FIELDS:
            if key not in data:
                raise ValueError(f"missing field `{key}`")
            value = data[key]
            if not isinstance(value, str):
                raise ValueError(f"field `{key}` must be a string")
            kwargs[attr] = value
        for attr, key in _USER_MAP_FIELDS:
            if key not in data:
                raise ValueError(f"missing field `{key}`")
            value = data[key]
            if not isinstance(value, Mapping):
                raise ValueError(f"field `{key}` must be an object")
            kwargs[attr] = dict(value)
        if "lastSeenDate" in data:
            kwargs["last_seen_date"] = _parse_datetime(data["lastSeenDate"])
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the camelCase mapping that from_dict reads."""
        result: dict[str, Any] = {key: getattr(self, attr) for attr, key in _USER_STRING_FIELDS}
        for attr, key in _USER_MAP_FIELDS:
            result[key] = dict(getattr(self, attr))
        result["lastSeenDate"] = _format_datetime(self.last_seen_date)
        return result

    def get_populated_user(
        self, platform_data: Mapping[str, Any], created_date: datetime | None = None
    ) -> PopulatedUser:
        """Combine this user with platform data; created_date defaults to now."""
        return PopulatedUser(
            user_id=self.user_id,
            email=self.email,
            name=self.name,
            language=self.language,
            country=self.country,
            app_version=self.app_version,
            app_build=self.app_build,
            custom_data=dict(self.custom_data),
            private_custom_data=dict(self.private_custom_data),
            device_model=self.device_model,
            last_seen_date=self.last_seen_date,
            platform_data=platform_data,
            created_date=created_date if created_date is not None else _now(),
        )


@dataclass
class PopulatedUser:
    """A user enriched with the platform data of the running SDK instance."""

    user_id: str
    email: str = ""
    name: str = ""
    language: str = ""
    country: str = ""
    app_version: str = ""
    app_build: str = ""
    custom_data: dict[str, Any] = field(default_factory=dict)
    private_custom_data: dict[str, Any] = field(default_factory=dict)
    device_model: str = ""
    last_seen_date: datetime = field(default_factory=_now)
    platform_data: Mapping[str, Any] = field(default_factory=dict)
    created_date: datetime = field(default_factory=_now)

    @classmethod
    def from_user(
        cls,
        user: User,
        platform_data: Mapping[str, Any],
        client_custom_data: Mapping[str, Any] | None = None,
    ) -> PopulatedUser:
        """Populate a user now, adding client custom data the user does not already carry."""
        populated = user.get_populated_user(platform_data)
        if client_custom_data:
            populated.merge_client_custom_data(client_custom_data)
        return populated

    def merge_client_custom_data(self, client_custom_data: Mapping[str, Any]) -> None:
        """Add each key that is in neither the public nor the private custom data."""
        for key, value in client_custom_data.items():
            if key not in self.custom_data and key not in self.private_custom_data:
                self.custom_data[key] = value

    def combined_custom_data(self) -> dict[str, Any]:
        """Public custom data overlaid with private custom data."""
        return {**self.custom_data, **self.private_custom_data}

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a camelCase mapping."""
        result: dict[str, Any] = {key: getattr(self, attr) for attr, key in _USER_STRING_FIELDS}
        for attr, key in _USER_MAP_FIELDS:
            result[key] = dict(getattr(self, attr))
        result["lastSeenDate"] = _format_datetime(self.last_seen_date)
        result["platformData"] = dict(self.platform_data)
        result["createdDate"] = _format_datetime(self.created_date)
        return result