"""chambr — local persistence and deterministic replay for multi-agent chambers.

Storage layout (under the resolved base dir, default ~/.chambr):

    config.json            Global config (defaults, stored API key, current chamber)
    chambers/<id>.json     One file per chamber (roomies, model settings, engine state)
    fixtures/<name>.json   Recorded generation request/response pairs for replay
"""

__version__ = "0.1.0"
