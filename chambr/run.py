"""Headless turn runner — one user message through the orchestration engine.

Run flow:
  1. Resolve the active chamber and its roomies (or a roomies JSON file).
  2. Pick the model config: explicit request > chamber advanced > config default.
  3. Resolve the text generator (injected, or live OpenRouter from the API key).
  4. Wrap it in the fixture adapter for the requested (or configured) mode.
  5. Run the engine, store the returned state on the chamber, save it.

Store and fixture errors propagate unchanged; anything else raised while the
engine runs is reported as a ProviderError with code RUN_FAILED.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections import Counter
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .chambers import load_chamber, resolve_active_chamber_id, save_chamber
from .config import load_config, now_iso, read_json, trimmed
from .constants import DEFAULT_BUDGET, DEFAULT_PRESET_ID, DEFAULT_PRESET_PROMPTS, SCHEMA_VERSION
from .engine import ModelConfig, RoomEngine, TurnContext, TurnResult
from .errors import ChambrError, ProviderError, ValidationError
from .fixtures import create_fixture_adapter
from .llm import resolve_generator
from .models import Chamber, FixtureMode, RoomieProfile, UserTier

logger = logging.getLogger(__name__)


class RunRequest(BaseModel):
    prompt: str
    chamber_id: str | None = None
    user_id: str = "local-user"
    user_name: str | None = None
    user_tier: UserTier | None = None
    preset_id: str | None = None
    model: str | None = None
    director_model: str | None = None
    summarizer_model: str | None = None
    fixture_mode: FixtureMode | None = None
    fixture_name: str | None = None
    roomies_file: Path | None = None
    generate_text: Callable[..., Awaitable[str]] | None = None


class RunInputSummary(BaseModel):
    prompt: str
    preset_id: str
    fixture_mode: FixtureMode
    fixture_name: str | None = None
    roomie_ids: list[str]
    models: ModelConfig


class RunResult(BaseModel):
    schema_version: int = SCHEMA_VERSION
    status: str = "ok"
    run_id: str
    chamber_id: str
    started_at: str
    finished_at: str
    duration_ms: int
    input: RunInputSummary
    events: list[dict[str, Any]] = Field(default_factory=list)
    event_counts: dict[str, int] = Field(default_factory=dict)


def load_roomies_file(path: Path) -> list[RoomieProfile]:
    """Read roomie profiles from a JSON array, keeping entries with id, name and bio."""
    try:
        parsed = read_json(path)
    except (OSError, ValueError) as e:
        raise ValidationError(
            f"Cannot read roomies file {path}: {e}", code="ROOMIES_FILE_INVALID"
        ) from e
    if not isinstance(parsed, list):
        raise ValidationError("Roomies file must be a JSON array.", code="ROOMIES_FILE_INVALID")

    roomies = []
    for entry in parsed:
        if not isinstance(entry, dict):
            continue
        roomie_id = trimmed(entry.get("id"))
        name = trimmed(entry.get("name"))
        bio = trimmed(entry.get("bio"))
        if not roomie_id or not name or not bio:
            continue
        traits = entry.get("traits")
        roomies.append(RoomieProfile(
            id=roomie_id,
            name=name,
            bio=bio,
            traits=traits if isinstance(traits, str) else None,
            model=trimmed(entry.get("model")) or None,
        ))

    if not roomies:
        raise ValidationError(
            "Roomies file did not contain any valid roomie records.", code="ROOMIES_FILE_EMPTY"
        )
    return roomies


def pick_model_config(chamber: Chamber, request: RunRequest, default_model: str) -> ModelConfig:
    agent = trimmed(request.model) or chamber.advanced.default_agent_model or default_model
    return ModelConfig(
        default_agent_model=agent,
        director_model=trimmed(request.director_model) or chamber.advanced.director_model or agent,
        summarizer_model=(
            trimmed(request.summarizer_model) or chamber.advanced.summarizer_model or agent
        ),
    )


def preset_prompt(preset_id: str) -> str:
    return DEFAULT_PRESET_PROMPTS.get(preset_id, DEFAULT_PRESET_PROMPTS[DEFAULT_PRESET_ID])


async def run_headless(
    request: RunRequest,
    *,
    engine: RoomEngine,
    base_dir: Path | str | None = None,
) -> RunResult:
    """Run one turn for the active (or given) chamber and persist the new state."""
    load_dotenv(Path.cwd() / ".env")
    started_at = now_iso()
    started = time.monotonic()
    run_id = str(uuid.uuid4())

    config = load_config(base_dir)
    chamber = load_chamber(resolve_active_chamber_id(request.chamber_id, base_dir), base_dir)
    roomies = load_roomies_file(request.roomies_file) if request.roomies_file else chamber.roomies
    if not roomies:
        raise ValidationError(
            "At least one roomie is required in the chamber.", code="ROOMIES_REQUIRED"
        )

    models = pick_model_config(chamber, request, config.defaults.default_model)
    preset_id = trimmed(request.preset_id) or chamber.preset_id or DEFAULT_PRESET_ID
    resolved = resolve_generator(request.generate_text, base_dir)
    fixture_mode = request.fixture_mode or config.defaults.fixture_mode
    adapter = create_fixture_adapter(
        fixture_mode, resolved.generator, request.fixture_name, base_dir
    )
    logger.info(
        "run %s chamber=%s roomies=%d generator=%s fixture_mode=%s",
        run_id, chamber.id, len(roomies), resolved.source, fixture_mode,
    )

    reasoning = {
        key: value
        for key, value in (
            ("director", chamber.advanced.director_reasoning),
            ("default_agent", chamber.advanced.default_agent_reasoning),
            ("summarizer", chamber.advanced.summarizer_reasoning),
        )
        if value
    }
    turn = TurnContext(
        chamber_id=chamber.id,
        user_id=request.user_id,
        user_name=request.user_name or config.defaults.user_name,
        user_tier=request.user_tier or config.defaults.user_tier,
        user_message=request.prompt,
        chamber_goal=chamber.goal,
        roomies=roomies,
        models=models,
        reasoning=reasoning,
        budget=chamber.runtime.budget or dict(DEFAULT_BUDGET),
        preset_id=preset_id,
        preset_prompt=preset_prompt(preset_id),
        thought_display_default=(
            True
            if chamber.runtime.thought_display_default is None
            else chamber.runtime.thought_display_default
        ),
        max_agents=chamber.runtime.max_agents,
        compact_every_chars=chamber.runtime.compact_every_chars,
        compact_keep_messages=chamber.runtime.compact_keep_messages,
        state=chamber.state,
        generate_text=adapter,
    )

    try:
        result = await engine.run_turn(turn)
        if not isinstance(result, TurnResult):
            result = TurnResult.model_validate(result)
        chamber.state = result.state
        save_chamber(chamber, base_dir)
    except ChambrError:
        raise
    except Exception as e:
        logger.exception("run %s failed", run_id)
        raise ProviderError(str(e) or "Run failed.", code="RUN_FAILED") from e

    duration_ms = int((time.monotonic() - started) * 1000)
    return RunResult(
        run_id=run_id,
        chamber_id=chamber.id,
        started_at=started_at,
        finished_at=now_iso(),
        duration_ms=duration_ms,
        input=RunInputSummary(
            prompt=request.prompt,
            preset_id=preset_id,
            fixture_mode=fixture_mode,
            fixture_name=adapter.fixture_name,
            roomie_ids=[r.id for r in roomies],
            models=models,
        ),
        events=result.events,
        event_counts=dict(Counter(str(e.get("type", "unknown")) for e in result.events)),
    )
