"""Content-addressed fixture cache for text generation.

A fixture file (fixtures/<name>.json) maps request hashes to recorded
responses. The adapter wraps a TextGenerator and runs in one of three modes,
fixed at construction:

    live    pass-through; nothing is read or written
    record  call the generator, upsert the entry under the request hash,
            rewrite the whole fixture file, return the fresh response
    replay  answer from the fixture file only; the generator is never called

Request hashing: keep only the fields that determine the model output
(model, system, prompt, messages, temperature, reasoningEffort), serialize
with object keys sorted at every level by Unicode collation (the order
JavaScript's localeCompare gives) and JavaScript-compatible primitive
encoding, then SHA-256 → lowercase hex. The encoding must stay bit-exact so
fixture files recorded by other chambr implementations keep replaying.
"""

from __future__ import annotations

import hashlib
import json
import logging
import math
from decimal import Decimal
from pathlib import Path
from typing import Any

import pyuca
from pydantic import ValidationError as ModelValidationError

from .config import (
    ensure_storage,
    escape_surrogates,
    now_iso,
    read_json,
    schema_version,
    trimmed,
    write_json,
)
from .constants import SCHEMA_VERSION
from .errors import FixtureNotFoundError, FixtureReplayMissError
from .llm import TextGenerator, TextRequest
from .models import FixtureEntry, FixtureFile, FixtureMode
from .paths import fixture_path, normalize_fixture_name

logger = logging.getLogger(__name__)

FIXTURE_REQUEST_FIELDS = ("model", "system", "prompt", "messages", "temperature", "reasoningEffort")

_collator: pyuca.Collator | None = None


# ── Canonical hashing ────────────────────────────────────


def _js_number(value: float) -> str:
    """Format a float the way JavaScript's Number#toString does."""
    if not math.isfinite(value):
        return "null"
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    _, digit_tuple, exponent = Decimal(repr(abs(value))).as_tuple()
    digits = "".join(str(d) for d in digit_tuple).lstrip("0")
    stripped = digits.rstrip("0")
    exponent += len(digits) - len(stripped)
    digits = stripped
    k = len(digits)
    n = exponent + k  # value = 0.<digits> * 10**n

    if k <= n <= 21:
        text = digits + "0" * (n - k)
    elif 0 < n <= 21:
        text = f"{digits[:n]}.{digits[n:]}"
    elif -6 < n <= 0:
        text = "0." + "0" * -n + digits
    else:
        e = n - 1
        mantissa = digits if k == 1 else f"{digits[0]}.{digits[1:]}"
        text = f"{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"
    return sign + text


def _js_string(value: str) -> str:
    return escape_surrogates(json.dumps(value, ensure_ascii=False))


def _collation_key(key: str) -> tuple[int, ...]:
    global _collator
    if _collator is None:
        _collator = pyuca.Collator()
    return _collator.sort_key(key)


def stable_stringify(value: Any) -> str:
    """Serialize to compact JSON with object keys in collation order at every level.

    "tool_call_id" sorts before "toolCalls", "b" before "B", "10" before "9".
    Keys that collate equal keep their insertion order.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _js_number(value)
    if isinstance(value, str):
        return _js_string(value)
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(stable_stringify(item) for item in value) + "]"
    if isinstance(value, dict):
        items = sorted(
            ((str(key), val) for key, val in value.items()),
            key=lambda item: _collation_key(item[0]),
        )
        return "{" + ",".join(
            f"{_js_string(key)}:{stable_stringify(val)}" for key, val in items
        ) + "}"
    return _js_string(str(value))


def normalize_request(request: TextRequest | dict[str, Any]) -> dict[str, Any]:
    """Snapshot of the output-determining request fields that are present."""
    return {key: request[key] for key in FIXTURE_REQUEST_FIELDS if key in request}


def hash_request(request: TextRequest | dict[str, Any]) -> str:
    # Absent fields hash as null so the key set is always the same six fields.
    normalized = {key: request.get(key) for key in FIXTURE_REQUEST_FIELDS}
    return hashlib.sha256(stable_stringify(normalized).encode("utf-8")).hexdigest()


# ── Fixture files ────────────────────────────────────────


def _new_fixture_file(name: str) -> FixtureFile:
    now = now_iso()
    return FixtureFile(name=name, created_at=now, updated_at=now)


def load_fixture(
    fixture_name: str | None = None, base_dir: Path | str | None = None
) -> FixtureFile | None:
    """Read a fixture file. Returns None if it is missing or not a fixture payload."""
    name = normalize_fixture_name(fixture_name)
    path = fixture_path(name, base_dir)
    try:
        raw = read_json(path)
    except (OSError, ValueError) as e:
        logger.debug("fixture %s unavailable: %s", path, e)
        return None
    if not isinstance(raw, dict) or not isinstance(raw.get("entries"), dict):
        logger.warning("fixture %s has no entries mapping; ignoring it", path)
        return None

    entries: dict[str, FixtureEntry] = {}
    for key, entry in raw["entries"].items():
        try:
            entries[key] = FixtureEntry.model_validate(entry)
        except ModelValidationError:
            logger.warning("fixture %s: skipping malformed entry %s", name, key[:12])

    now = now_iso()
    return FixtureFile(
        schema_version=schema_version(raw.get("schemaVersion")),
        name=name,
        created_at=trimmed(raw.get("createdAt"), now),
        updated_at=trimmed(raw.get("updatedAt"), now),
        entries=entries,
    )


def save_fixture(fixture: FixtureFile, base_dir: Path | str | None = None) -> None:
    ensure_storage(base_dir)
    fixture.name = normalize_fixture_name(fixture.name)
    fixture.schema_version = SCHEMA_VERSION
    fixture.updated_at = now_iso()
    write_json(fixture_path(fixture.name, base_dir), fixture.to_json_dict())


def _upsert_entry(fixture: FixtureFile, request: TextRequest, response: str) -> FixtureEntry:
    request_hash = hash_request(request)
    previous = fixture.entries.get(request_hash)
    entry = FixtureEntry(
        hash=request_hash,
        created_at=previous.created_at if previous else now_iso(),
        request=normalize_request(request),
        response=response,
    )
    fixture.entries[request_hash] = entry
    return entry


def _lookup(fixture: FixtureFile, request: TextRequest) -> str:
    request_hash = hash_request(request)
    entry = fixture.entries.get(request_hash)
    if entry is None:
        raise FixtureReplayMissError(fixture.name, request_hash)
    return entry.response


def record_fixture(
    request: TextRequest,
    response: str,
    fixture_name: str | None = None,
    base_dir: Path | str | None = None,
) -> FixtureEntry:
    """Store one request/response pair without going through a generator."""
    name = normalize_fixture_name(fixture_name)
    fixture = load_fixture(name, base_dir) or _new_fixture_file(name)
    entry = _upsert_entry(fixture, request, response)
    save_fixture(fixture, base_dir)
    return entry


def replay_fixture(
    request: TextRequest,
    fixture_name: str | None = None,
    base_dir: Path | str | None = None,
) -> str:
    name = normalize_fixture_name(fixture_name)
    fixture = load_fixture(name, base_dir)
    if fixture is None:
        raise FixtureNotFoundError(name)
    return _lookup(fixture, request)


# ── Adapter ──────────────────────────────────────────────


class FixtureAdapter:
    """A TextGenerator that records to or replays from a fixture file.

    Build with create_fixture_adapter(); the mode never changes afterwards.
    """

    def __init__(
        self,
        mode: FixtureMode,
        generator: TextGenerator,
        fixture: FixtureFile | None = None,
        base_dir: Path | str | None = None,
    ) -> None:
        self.mode = mode
        self._generator = generator
        self._fixture = fixture
        self._base_dir = base_dir

    @property
    def fixture_name(self) -> str | None:
        return self._fixture.name if self._fixture is not None else None

    async def __call__(self, request: TextRequest) -> str:
        if self.mode == "live":
            return await self._generator(request)

        assert self._fixture is not None
        if self.mode == "replay":
            return _lookup(self._fixture, request)

        response = await self._generator(request)
        entry = _upsert_entry(self._fixture, request, response)
        save_fixture(self._fixture, self._base_dir)
        logger.debug("recorded fixture %s entry %s", self._fixture.name, entry.hash[:12])
        return response


def create_fixture_adapter(
    mode: FixtureMode,
    generator: TextGenerator,
    fixture_name: str | None = None,
    base_dir: Path | str | None = None,
) -> FixtureAdapter:
    """Wrap a generator for the given mode.

    Raises FixtureNotFoundError in replay mode when the fixture file is absent.
    """
    if mode == "live":
        return FixtureAdapter(mode, generator)

    name = normalize_fixture_name(fixture_name)
    fixture = load_fixture(name, base_dir)
    if mode == "replay":
        if fixture is None:
            raise FixtureNotFoundError(name)
        return FixtureAdapter(mode, generator, fixture, base_dir)
    return FixtureAdapter(mode, generator, fixture or _new_fixture_file(name), base_dir)
