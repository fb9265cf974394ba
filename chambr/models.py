"""Persisted record types.

Attributes are snake_case in Python and camelCase on disk (pydantic aliases),
so files written by other chambr front-ends load unchanged. Validation here is
structural only; the stores run their own sanitizers on raw JSON first so that
bad on-disk values are replaced by defaults instead of rejected.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .constants import DEFAULT_MODEL, DEFAULT_PRESET_ID, SCHEMA_VERSION

UserTier = Literal["BASE", "PRO", "MAX"]
FixtureMode = Literal["live", "record", "replay"]
ReasoningSetting = Literal["auto", "none", "minimal", "low", "medium", "high", "xhigh"]


class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        """Dump with on-disk key names, omitting unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

class ConfigDefaults(Record):
    user_name: str = "User"
    user_tier: UserTier = "BASE"
    preset_id: str = DEFAULT_PRESET_ID
    default_model: str = DEFAULT_MODEL
    director_model: str | None = None
    summarizer_model: str | None = None
    fixture_mode: FixtureMode = "live"


class Config(Record):
    schema_version: int = SCHEMA_VERSION
    stored_api_key: str | None = Field(default=None, alias="openrouterApiKey")
    current_chamber_id: str | None = None
    defaults: ConfigDefaults = Field(default_factory=ConfigDefaults)


# ---------------------------------------------------------------------------
# Chamber
# ---------------------------------------------------------------------------

class RoomieProfile(Record):
    id: str
    name: str
    bio: str
    traits: str | None = None
    model: str | None = None  # None → inherit the chamber default


class ChamberAdvanced(Record):
    default_agent_model: str | None = None
    director_model: str | None = None
    summarizer_model: str | None = None
    director_reasoning: ReasoningSetting | None = None
    default_agent_reasoning: ReasoningSetting | None = None
    summarizer_reasoning: ReasoningSetting | None = None


class ChamberRuntime(Record):
    budget: dict[str, Any] | None = None
    thought_display_default: bool | None = None
    max_agents: int | None = Field(default=None, ge=1)
    compact_every_chars: int | None = Field(default=None, ge=0)
    compact_keep_messages: int | None = Field(default=None, ge=0)


class Chamber(Record):
    schema_version: int = SCHEMA_VERSION
    id: str
    name: str
    goal: str = ""
    preset_id: str = DEFAULT_PRESET_ID
    created_at: str
    updated_at: str
    roomies: list[RoomieProfile] = Field(default_factory=list)
    advanced: ChamberAdvanced = Field(default_factory=ChamberAdvanced)
    runtime: ChamberRuntime = Field(default_factory=ChamberRuntime)
    # Owned by the orchestration engine; stored and returned verbatim.
    state: dict[str, Any] = Field(default_factory=dict)

    def to_json_dict(self) -> dict[str, Any]:
        data = self.model_dump(
            mode="json", by_alias=True, exclude_none=True, exclude={"state"}
        )
        data["state"] = self.state
        return data

    def find_roomie(self, roomie_id: str) -> RoomieProfile | None:
        for roomie in self.roomies:
            if roomie.id == roomie_id:
                return roomie
        return None


class RoomieModel(BaseModel):
    """Effective model for one roomie, as reported by list_roomie_models()."""

    roomie_id: str
    roomie_name: str
    model: str
    inherited: bool


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

class FixtureEntry(Record):
    hash: str
    created_at: str
    request: dict[str, Any]
    response: str

    def to_json_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True, exclude={"request"})
        data["request"] = self.request
        return data


class FixtureFile(Record):
    schema_version: int = SCHEMA_VERSION
    name: str
    created_at: str
    updated_at: str
    entries: dict[str, FixtureEntry] = Field(default_factory=dict)

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "schemaVersion": self.schema_version,
            "name": self.name,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "entries": {key: entry.to_json_dict() for key, entry in self.entries.items()},
        }
