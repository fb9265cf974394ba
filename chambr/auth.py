"""Stored provider API key management (login / logout / status)."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel

from .config import load_config, update_config
from .constants import API_KEY_ENV
from .errors import ValidationError

logger = logging.getLogger(__name__)


class AuthStatus(BaseModel):
    has_env: bool
    has_stored: bool
    active_source: Literal["env", "stored", "none"]


def login(key: str, base_dir: Path | str | None = None) -> None:
    """Store an API key in config.json."""
    key = (key or "").strip()
    if not key:
        raise ValidationError("No API key provided.", code="API_KEY_REQUIRED")
    update_config(lambda c: c.model_copy(update={"stored_api_key": key}), base_dir)
    logger.info("stored provider API key")


def logout(base_dir: Path | str | None = None) -> None:
    """Remove the stored API key. The environment variable, if set, still applies."""
    update_config(lambda c: c.model_copy(update={"stored_api_key": None}), base_dir)
    logger.info("cleared stored provider API key")


def status(base_dir: Path | str | None = None) -> AuthStatus:
    has_env = bool(os.environ.get(API_KEY_ENV, "").strip())
    has_stored = load_config(base_dir).stored_api_key is not None
    if has_env:
        source = "env"
    elif has_stored:
        source = "stored"
    else:
        source = "none"
    return AuthStatus(has_env=has_env, has_stored=has_stored, active_source=source)
