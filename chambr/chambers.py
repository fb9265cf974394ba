"""Chamber store: one JSON file per chamber under chambers/<id>.json.

Unlike the config, a chamber is always requested by id, so a missing or
unparsable file is a hard error (ChamberNotFoundError). Field-level garbage is
still repaired on load: every field is coerced or defaulted, roomies without a
bio or with a repeated id are dropped, and the engine state is kept verbatim.

Roomies are kept sorted by name (case-insensitive) after every mutation, and
roomie ids are unique within a chamber.
"""

from __future__ import annotations

import logging
import math
import re
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .config import (
    ensure_storage,
    finite_number,
    load_config,
    now_iso,
    optional_trimmed,
    read_json,
    schema_version,
    trimmed,
    update_config,
    write_json,
)
from .constants import DEFAULT_PRESET_ID, REASONING_SETTINGS, SCHEMA_VERSION
from .engine import create_initial_room_state
from .errors import ChamberNotFoundError, InvalidChamberPayloadError, ValidationError
from .models import (
    Chamber,
    ChamberAdvanced,
    ChamberRuntime,
    RoomieModel,
    RoomieProfile,
)
from .paths import chamber_path, chambers_dir

logger = logging.getLogger(__name__)

StateFactory = Callable[[], dict[str, Any]]


def slugify(name: str) -> str:
    """Derive a roomie id from a display name.

    "Ava Stone" → "ava-stone"; "!!!" → ""
    """
    return re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")


def _roomie_id_from_name(name: str) -> str:
    return slugify(name) or f"roomie-{uuid.uuid4().hex[:8]}"


def _sort_roomies(roomies: list[RoomieProfile]) -> list[RoomieProfile]:
    return sorted(roomies, key=lambda r: (r.name.casefold(), r.name))


# ── Sanitization ─────────────────────────────────────────


def _sanitize_roomie(value: Any, index: int) -> RoomieProfile | None:
    if not isinstance(value, dict):
        return None
    bio = trimmed(value.get("bio"))
    if not bio:
        return None
    roomie_id = trimmed(value.get("id"), f"roomie-{index + 1}")
    traits = value.get("traits")
    return RoomieProfile(
        id=roomie_id,
        name=trimmed(value.get("name"), roomie_id),
        bio=bio,
        traits=traits if isinstance(traits, str) else None,
        model=optional_trimmed(value.get("model")),
    )


def _reasoning(value: Any) -> str | None:
    return value if isinstance(value, str) and value in REASONING_SETTINGS else None


def _floored(value: Any, minimum: int) -> int | None:
    number = finite_number(value)
    if number is None:
        return None
    return max(minimum, math.floor(number))


def sanitize_chamber(
    value: Any, chamber_id: str, initial_state: StateFactory | None = None
) -> Chamber:
    """Coerce a parsed chamber payload into a complete Chamber.

    Raises InvalidChamberPayloadError if the payload is not a JSON object.
    """
    if not isinstance(value, dict):
        raise InvalidChamberPayloadError(chamber_id)

    raw_roomies = value.get("roomies")
    if not isinstance(raw_roomies, list):
        raw_roomies = []
    roomies: dict[str, RoomieProfile] = {}
    for index, entry in enumerate(raw_roomies):
        roomie = _sanitize_roomie(entry, index)
        if roomie is None:
            continue
        if roomie.id in roomies:
            logger.warning("chamber %s: dropping duplicate roomie id %s", chamber_id, roomie.id)
            continue
        roomies[roomie.id] = roomie

    advanced = value.get("advanced")
    if not isinstance(advanced, dict):
        advanced = {}
    runtime = value.get("runtime")
    if not isinstance(runtime, dict):
        runtime = {}
    state = value.get("state")
    if not isinstance(state, dict):
        state = (initial_state or create_initial_room_state)()
    thought_display = runtime.get("thoughtDisplayDefault")
    goal = value.get("goal")
    now = now_iso()

    return Chamber(
        schema_version=schema_version(value.get("schemaVersion")),
        id=trimmed(value.get("id"), chamber_id),
        name=trimmed(value.get("name"), chamber_id),
        goal=goal if isinstance(goal, str) else "",
        preset_id=trimmed(value.get("presetId"), DEFAULT_PRESET_ID),
        created_at=trimmed(value.get("createdAt"), now),
        updated_at=trimmed(value.get("updatedAt"), now),
        roomies=_sort_roomies(list(roomies.values())),
        advanced=ChamberAdvanced(
            default_agent_model=optional_trimmed(advanced.get("defaultAgentModel")),
            director_model=optional_trimmed(advanced.get("directorModel")),
            summarizer_model=optional_trimmed(advanced.get("summarizerModel")),
            director_reasoning=_reasoning(advanced.get("directorReasoning")),
            default_agent_reasoning=_reasoning(advanced.get("defaultAgentReasoning")),
            summarizer_reasoning=_reasoning(advanced.get("summarizerReasoning")),
        ),
        runtime=ChamberRuntime(
            budget=runtime["budget"] if isinstance(runtime.get("budget"), dict) else None,
            thought_display_default=(
                thought_display if isinstance(thought_display, bool) else None
            ),
            max_agents=_floored(runtime.get("maxAgents"), 1),
            compact_every_chars=_floored(runtime.get("compactEveryChars"), 0),
            compact_keep_messages=_floored(runtime.get("compactKeepMessages"), 0),
        ),
        state=state,
    )


# ── Chamber CRUD ─────────────────────────────────────────


def create_chamber(
    *,
    id: str | None = None,
    name: str | None = None,
    goal: str | None = None,
    preset_id: str | None = None,
    base_dir: Path | str | None = None,
    initial_state: StateFactory | None = None,
) -> Chamber:
    """Create and persist a new chamber, and make it the current chamber."""
    chamber_id = (id or "").strip() or str(uuid.uuid4())[:12]
    config = load_config(base_dir)
    now = now_iso()
    chamber = Chamber(
        id=chamber_id,
        name=(name or "").strip() or f"Chamber {chamber_id[:6]}",
        goal=goal or "",
        preset_id=(preset_id or "").strip() or config.defaults.preset_id,
        created_at=now,
        updated_at=now,
        state=(initial_state or create_initial_room_state)(),
    )
    save_chamber(chamber, base_dir)
    set_current_chamber(chamber.id, base_dir)
    logger.info("created chamber %s", chamber.id)
    return chamber


def load_chamber(
    chamber_id: str,
    base_dir: Path | str | None = None,
    initial_state: StateFactory | None = None,
) -> Chamber:
    chamber_id = (chamber_id or "").strip()
    if not chamber_id:
        raise ValidationError("A chamber id is required.", code="CHAMBER_ID_REQUIRED")
    path = chamber_path(chamber_id, base_dir)
    try:
        raw = read_json(path)
    except (OSError, ValueError) as e:
        raise ChamberNotFoundError(chamber_id) from e
    return sanitize_chamber(raw, chamber_id, initial_state)


def save_chamber(chamber: Chamber, base_dir: Path | str | None = None) -> None:
    """Persist a chamber, stamping the current schema version and updated_at."""
    ensure_storage(base_dir)
    chamber_id = chamber.id.strip()
    if not chamber_id:
        raise ValidationError(
            "Cannot save chamber without a valid id.", code="CHAMBER_ID_INVALID"
        )
    chamber.schema_version = SCHEMA_VERSION
    chamber.updated_at = now_iso()
    write_json(chamber_path(chamber_id, base_dir), chamber.to_json_dict())
    logger.debug("saved chamber %s", chamber_id)


def list_chambers(base_dir: Path | str | None = None) -> list[Chamber]:
    """All readable chambers, most recently updated first."""
    ensure_storage(base_dir)
    chambers = []
    for path in sorted(chambers_dir(base_dir).glob("*.json")):
        if not path.is_file():
            continue
        try:
            chambers.append(load_chamber(path.stem, base_dir))
        except ValidationError as e:
            logger.warning("skipping chamber file %s: %s", path.name, e)
    chambers.sort(key=lambda c: c.updated_at, reverse=True)
    return chambers


def reset_chamber(
    chamber_id: str,
    base_dir: Path | str | None = None,
    initial_state: StateFactory | None = None,
) -> Chamber:
    """Replace a chamber's engine state with a fresh one. Roomies and settings are kept."""
    chamber = load_chamber(chamber_id, base_dir)
    chamber.state = (initial_state or create_initial_room_state)()
    save_chamber(chamber, base_dir)
    return load_chamber(chamber_id, base_dir)


# ── Current chamber pointer ──────────────────────────────


def set_current_chamber(chamber_id: str, base_dir: Path | str | None = None) -> None:
    update_config(
        lambda c: c.model_copy(update={"current_chamber_id": chamber_id}), base_dir
    )


def get_current_chamber_id(base_dir: Path | str | None = None) -> str | None:
    return load_config(base_dir).current_chamber_id


def resolve_active_chamber_id(
    explicit_id: str | None = None, base_dir: Path | str | None = None
) -> str:
    """Explicit id wins, then the stored current chamber."""
    if explicit_id and explicit_id.strip():
        return explicit_id.strip()
    current = get_current_chamber_id(base_dir)
    if current:
        return current
    raise ValidationError(
        "No active chamber selected. Select a chamber or pass a chamber id.",
        code="NO_ACTIVE_CHAMBER",
    )


def use_chamber(chamber_id: str, base_dir: Path | str | None = None) -> Chamber:
    """Make an existing chamber current. Raises if it does not exist."""
    chamber = load_chamber(chamber_id, base_dir)
    set_current_chamber(chamber.id, base_dir)
    return chamber


def get_active_chamber(base_dir: Path | str | None = None) -> Chamber | None:
    chamber_id = get_current_chamber_id(base_dir)
    if chamber_id is None:
        return None
    return load_chamber(chamber_id, base_dir)


# ── Roomies ──────────────────────────────────────────────


def add_roomie(
    name: str,
    bio: str,
    *,
    chamber_id: str | None = None,
    id: str | None = None,
    traits: str | None = None,
    model: str | None = None,
    base_dir: Path | str | None = None,
) -> Chamber:
    """Add a roomie to a chamber. Returns the chamber as persisted."""
    chamber = load_chamber(resolve_active_chamber_id(chamber_id, base_dir), base_dir)

    name = (name or "").strip()
    bio = (bio or "").strip()
    if not name or not bio:
        raise ValidationError(
            "Both roomie name and bio are required.", code="ROOMIE_REQUIRED_FIELDS"
        )

    roomie_id = (id or "").strip() or _roomie_id_from_name(name)
    if chamber.find_roomie(roomie_id) is not None:
        raise ValidationError(
            f"Roomie '{roomie_id}' already exists in chamber '{chamber.id}'.",
            code="ROOMIE_ALREADY_EXISTS",
        )

    chamber.roomies.append(
        RoomieProfile(
            id=roomie_id,
            name=name,
            bio=bio,
            traits=traits or None,
            model=(model or "").strip() or None,
        )
    )
    if not chamber.advanced.default_agent_model:
        chamber.advanced.default_agent_model = load_config(base_dir).defaults.default_model
    chamber.roomies = _sort_roomies(chamber.roomies)
    save_chamber(chamber, base_dir)
    return load_chamber(chamber.id, base_dir)


def list_roomies(
    chamber_id: str | None = None, base_dir: Path | str | None = None
) -> list[RoomieProfile]:
    chamber = load_chamber(resolve_active_chamber_id(chamber_id, base_dir), base_dir)
    return _sort_roomies(chamber.roomies)


def set_roomie_model(
    roomie_id: str,
    model: str,
    *,
    chamber_id: str | None = None,
    base_dir: Path | str | None = None,
) -> Chamber:
    chamber = load_chamber(resolve_active_chamber_id(chamber_id, base_dir), base_dir)
    roomie = chamber.find_roomie((roomie_id or "").strip())
    if roomie is None:
        raise ValidationError(
            f"Roomie '{roomie_id}' not found in chamber '{chamber.id}'.",
            code="ROOMIE_NOT_FOUND",
        )
    model = (model or "").strip()
    if not model:
        raise ValidationError("Model is required.", code="MODEL_REQUIRED")

    roomie.model = model
    save_chamber(chamber, base_dir)
    return load_chamber(chamber.id, base_dir)


def list_roomie_models(
    chamber_id: str | None = None, base_dir: Path | str | None = None
) -> list[RoomieModel]:
    """Effective model per roomie; inherited=True when the chamber/global default applies."""
    chamber = load_chamber(resolve_active_chamber_id(chamber_id, base_dir), base_dir)
    default_model = (
        chamber.advanced.default_agent_model or load_config(base_dir).defaults.default_model
    )
    return [
        RoomieModel(
            roomie_id=roomie.id,
            roomie_name=roomie.name,
            model=roomie.model or default_model,
            inherited=not roomie.model,
        )
        for roomie in _sort_roomies(chamber.roomies)
    ]


def set_director_model(
    director_model: str,
    *,
    chamber_id: str | None = None,
    base_dir: Path | str | None = None,
) -> Chamber:
    chamber = load_chamber(resolve_active_chamber_id(chamber_id, base_dir), base_dir)
    director_model = (director_model or "").strip()
    if not director_model:
        raise ValidationError("Director model is required.", code="DIRECTOR_MODEL_REQUIRED")

    chamber.advanced.director_model = director_model
    save_chamber(chamber, base_dir)
    return load_chamber(chamber.id, base_dir)
