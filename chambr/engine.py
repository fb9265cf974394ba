"""Orchestration engine seam.

The multi-agent turn engine lives outside this package. chambr only needs two
things from it: a constructor for a fresh room state (stored verbatim in each
chamber) and an async run_turn() that consumes roomies, a budget and a text
generator and returns events plus the updated state.

    class RoomEngine(Protocol):
        def initial_state(self) -> dict: ...
        async def run_turn(self, turn: TurnContext) -> TurnResult: ...
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from pydantic import BaseModel, Field

from .models import RoomieProfile


def create_initial_room_state() -> dict[str, Any]:
    """Empty room state used when no engine-specific constructor is supplied."""
    return {
        "shared": {"turn_index": 0, "messages": [], "summary": ""},
        "agents": {},
    }


class ModelConfig(BaseModel):
    default_agent_model: str
    director_model: str
    summarizer_model: str


class TurnContext(BaseModel):
    """Everything the engine needs to run one turn of a chamber."""

    chamber_id: str
    user_id: str
    user_name: str
    user_tier: str
    user_message: str
    chamber_goal: str
    roomies: list[RoomieProfile]
    models: ModelConfig
    reasoning: dict[str, str] = Field(default_factory=dict)
    budget: dict[str, Any]
    preset_id: str
    preset_prompt: str
    thought_display_default: bool = True
    max_agents: int | None = None
    compact_every_chars: int | None = None
    compact_keep_messages: int | None = None
    state: dict[str, Any]
    generate_text: Callable[..., Awaitable[str]]


class TurnResult(BaseModel):
    events: list[dict[str, Any]] = Field(default_factory=list)
    state: dict[str, Any]


class RoomEngine(Protocol):
    def initial_state(self) -> dict[str, Any]: ...

    async def run_turn(self, turn: TurnContext) -> TurnResult: ...
