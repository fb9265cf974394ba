"""Storage path resolution.

The base dir is resolved once by the caller and threaded through every store
call. Precedence: explicit argument > $CHAMBR_HOME (if non-blank) > ~/.chambr.
Nothing in this module touches the filesystem.
"""

import os
import re
from pathlib import Path

from .constants import BASE_DIR_ENV, DEFAULT_BASE_DIR_NAME, DEFAULT_FIXTURE_NAME

_FIXTURE_NAME_INVALID = re.compile(r"[^A-Za-z0-9_.-]+")


def resolve_base_dir(base_dir: Path | str | None = None) -> Path:
    if base_dir:
        return Path(base_dir).expanduser().resolve()
    from_env = os.environ.get(BASE_DIR_ENV, "").strip()
    if from_env:
        return Path(from_env).expanduser().resolve()
    return Path.home() / DEFAULT_BASE_DIR_NAME


def config_path(base_dir: Path | str | None = None) -> Path:
    return resolve_base_dir(base_dir) / "config.json"


def chambers_dir(base_dir: Path | str | None = None) -> Path:
    return resolve_base_dir(base_dir) / "chambers"


def chamber_path(chamber_id: str, base_dir: Path | str | None = None) -> Path:
    return chambers_dir(base_dir) / f"{chamber_id}.json"


def fixtures_dir(base_dir: Path | str | None = None) -> Path:
    return resolve_base_dir(base_dir) / "fixtures"


def normalize_fixture_name(name: str | None) -> str:
    """Make a fixture name safe for use as a filename.

    "my scenario/1" → "my-scenario-1"; blank → "default"
    """
    text = _FIXTURE_NAME_INVALID.sub("-", (name or "").strip())
    return text.strip("-") or DEFAULT_FIXTURE_NAME


def fixture_path(name: str | None, base_dir: Path | str | None = None) -> Path:
    return fixtures_dir(base_dir) / f"{normalize_fixture_name(name)}.json"
