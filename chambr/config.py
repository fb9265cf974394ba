"""Global config store (config.json) and shared JSON file helpers.

The config is self-healing: a missing, unreadable or corrupt config.json is
replaced by a fresh default on load and never surfaced as an error. Every load
and save runs the raw JSON through sanitize_config(), so unknown or invalid
fields fall back to defaults instead of being rejected.
"""

from __future__ import annotations

import json
import logging
import math
import os
import re
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .constants import API_KEY_ENV, FIXTURE_MODES, SCHEMA_VERSION, USER_TIERS
from .models import Config, ConfigDefaults
from .paths import chambers_dir, config_path, fixtures_dir, resolve_base_dir

logger = logging.getLogger(__name__)

CONFIG_FILE_MODE = 0o600

_SURROGATES = re.compile(r"[\ud800-\udbff][\udc00-\udfff]|[\ud800-\udfff]")


# ── File helpers ─────────────────────────────────────────


def now_iso() -> str:
    """UTC timestamp with millisecond precision, e.g. 2026-01-02T03:04:05.678Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def ensure_storage(base_dir: Path | str | None = None) -> Path:
    root = resolve_base_dir(base_dir)
    root.mkdir(parents=True, exist_ok=True)
    chambers_dir(base_dir).mkdir(exist_ok=True)
    fixtures_dir(base_dir).mkdir(exist_ok=True)
    return root


def _encode_surrogates(match: re.Match[str]) -> str:
    text = match.group()
    if len(text) == 2:
        return text.encode("utf-16-le", "surrogatepass").decode("utf-16-le")
    return f"\\u{ord(text):04x}"


def escape_surrogates(text: str) -> str:
    """Make json.dumps(..., ensure_ascii=False) output encodable as UTF-8.

    Split surrogate pairs are joined back into one character and lone
    surrogates become \\uXXXX escapes, which is what JSON.stringify emits.
    """
    return _SURROGATES.sub(_encode_surrogates, text)


def read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def write_json(path: Path, data: Any, mode: int | None = None) -> None:
    """Write pretty JSON with a trailing newline, optionally with restricted permissions."""
    path.parent.mkdir(parents=True, exist_ok=True)
    text = escape_surrogates(json.dumps(data, indent=2, ensure_ascii=False)) + "\n"
    if mode is None:
        path.write_text(text, encoding="utf-8")
        return
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        fh.write(text)
    # os.open only applies the mode to new files
    try:
        path.chmod(mode)
    except OSError as e:
        logger.debug("could not chmod %s: %s", path, e)


# ── Coercion helpers (shared with the chamber store) ─────


def trimmed(value: Any, fallback: str = "") -> str:
    if not isinstance(value, str):
        return fallback
    return value.strip() or fallback


def optional_trimmed(value: Any) -> str | None:
    return trimmed(value) or None


def finite_number(value: Any) -> float | int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def schema_version(value: Any) -> int:
    number = finite_number(value)
    if number is None or number < 0:
        return SCHEMA_VERSION
    return math.floor(number)


# ── Sanitization ─────────────────────────────────────────


def sanitize_config(value: Any) -> Config:
    """Map arbitrary parsed JSON (or a Config) to a complete, valid Config."""
    if isinstance(value, Config):
        value = value.to_json_dict()
    if not isinstance(value, dict):
        return Config()

    raw_defaults = value.get("defaults")
    if not isinstance(raw_defaults, dict):
        raw_defaults = {}
    fallback = ConfigDefaults()

    user_tier = raw_defaults.get("userTier")
    fixture_mode = raw_defaults.get("fixtureMode")
    defaults = ConfigDefaults(
        user_name=trimmed(raw_defaults.get("userName"), fallback.user_name),
        user_tier=user_tier if user_tier in USER_TIERS else fallback.user_tier,
        preset_id=trimmed(raw_defaults.get("presetId"), fallback.preset_id),
        default_model=trimmed(raw_defaults.get("defaultModel"), fallback.default_model),
        director_model=optional_trimmed(raw_defaults.get("directorModel")),
        summarizer_model=optional_trimmed(raw_defaults.get("summarizerModel")),
        fixture_mode=fixture_mode if fixture_mode in FIXTURE_MODES else fallback.fixture_mode,
    )

    # "storedApiKey" is accepted as a legacy spelling of "openrouterApiKey"
    api_key = optional_trimmed(value.get("openrouterApiKey")) or optional_trimmed(
        value.get("storedApiKey")
    )
    return Config(
        schema_version=schema_version(value.get("schemaVersion")),
        stored_api_key=api_key,
        current_chamber_id=optional_trimmed(value.get("currentChamberId")),
        defaults=defaults,
    )


# ── Store operations ─────────────────────────────────────


def load_config(base_dir: Path | str | None = None) -> Config:
    """Read config.json, writing and returning a default config if it is unusable."""
    ensure_storage(base_dir)
    path = config_path(base_dir)
    try:
        raw = read_json(path)
    except (OSError, ValueError) as e:
        if path.exists():
            logger.warning("config at %s is unreadable (%s); resetting to defaults", path, e)
        else:
            logger.debug("no config at %s; writing defaults", path)
        config = Config()
        save_config(config, base_dir)
        return config
    return sanitize_config(raw)


def save_config(config: Config, base_dir: Path | str | None = None) -> None:
    """Sanitize and write config.json (owner-only, it may hold an API key)."""
    ensure_storage(base_dir)
    write_json(config_path(base_dir), sanitize_config(config).to_json_dict(), CONFIG_FILE_MODE)


def update_config(
    updater: Callable[[Config], Config], base_dir: Path | str | None = None
) -> Config:
    """Load, transform, save, and return the config as it reads back from disk."""
    current = load_config(base_dir)
    save_config(updater(current), base_dir)
    return load_config(base_dir)


def resolve_api_key(base_dir: Path | str | None = None) -> str | None:
    """Return the provider API key: $OPENROUTER_API_KEY wins over the stored key."""
    from_env = os.environ.get(API_KEY_ENV, "").strip()
    if from_env:
        return from_env
    return load_config(base_dir).stored_api_key
