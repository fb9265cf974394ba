"""Defaults shared by the stores, the fixture cache and the runner."""

from typing import Any

SCHEMA_VERSION = 1

BASE_DIR_ENV = "CHAMBR_HOME"
API_KEY_ENV = "OPENROUTER_API_KEY"
DEFAULT_BASE_DIR_NAME = ".chambr"

DEFAULT_MODEL = "anthropic/claude-3.7-sonnet"
DEFAULT_PRESET_ID = "balanced"
DEFAULT_FIXTURE_NAME = "default"

USER_TIERS = ("BASE", "PRO", "MAX")
FIXTURE_MODES = ("live", "record", "replay")
REASONING_SETTINGS = ("auto", "none", "minimal", "low", "medium", "high", "xhigh")

DEFAULT_PRESET_PROMPTS: dict[str, str] = {
    "balanced": (
        "Balanced dramatic tone. Keep events sparse. "
        "Prioritize clear decisions and grounded interactions."
    ),
    "sitcom": (
        "Playful ensemble rhythm. Use occasional punchy actions "
        "and meaningful short voiceover thoughts."
    ),
    "debate": (
        "High-friction intellectual debate. Emphasize argument moves, "
        "rebuttals, and strategic interruptions."
    ),
    "strategic": (
        "Deliberate strategic room. Focus on options, tradeoffs, "
        "and decisive coordination beats."
    ),
}

DEFAULT_BUDGET: dict[str, Any] = {
    "maxDirectorAttempts": 2,
    "maxActionEventsPerTurn": 2,
    "maxThoughtEventsPerTurn": 2,
    "maxThoughtCharsPerEvent": 220,
    "targetP95TurnLatencyMs": 10000,
}
