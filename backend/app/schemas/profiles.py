"""Typed views over the loosely structured user profile blobs."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

LOGGER = logging.getLogger(__name__)

_PARENT_KEYS = ("parent_id", "parentId", "parent")
_CHILDREN_KEYS = ("child_ids", "childIds", "children")


def _load_blob(raw: Any) -> Any:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        stripped = raw.strip()
        if not stripped:
            return {}
        return json.loads(stripped)
    return raw


class StudentProfile(BaseModel):
    """Profile data stored on student users."""

    model_config = ConfigDict(extra="ignore")

    parent_id: Optional[str] = Field(default=None, description="Parent responsible for billing")

    @model_validator(mode="before")
    @classmethod
    def _collect_legacy_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        for key in _PARENT_KEYS:
            value = data.get(key)
            if value:
                return {**data, "parent_id": str(value)}
        return {**data, "parent_id": None}

    @classmethod
    def parse(cls, raw: Any) -> "StudentProfile":
        """Parse a stored blob, returning an empty profile when it is unusable."""

        if raw is None:
            return cls()
        try:
            return cls.model_validate(_load_blob(raw))
        except (ValueError, ValidationError) as exc:
            LOGGER.warning("Ignoring malformed student profile: %s", exc)
            return cls()


class ParentProfile(BaseModel):
    """Profile data stored on parent users."""

    model_config = ConfigDict(extra="ignore")

    child_ids: set[str] = Field(default_factory=set, description="Students linked to the parent")

    @model_validator(mode="before")
    @classmethod
    def _collect_legacy_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        source = data
        assignments = data.get("assignments")
        if isinstance(assignments, dict) and not any(key in data for key in _CHILDREN_KEYS):
            source = assignments
        for key in _CHILDREN_KEYS:
            if key in source:
                return {**data, "child_ids": source.get(key) or []}
        return {**data, "child_ids": []}

    @field_validator("child_ids", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple, set)):
            return {str(item) for item in value if item}
        return value

    @classmethod
    def parse(cls, raw: Any) -> "ParentProfile":
        if raw is None:
            return cls()
        try:
            return cls.model_validate(_load_blob(raw))
        except (ValueError, ValidationError) as exc:
            LOGGER.warning("Ignoring malformed parent profile: %s", exc)
            return cls()
