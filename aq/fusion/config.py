"""Runtime configuration for the combine pipeline.

Settings are read from the environment, optionally seeded from a ``.env``
file.  Nothing here is mutated after loading: every combine call receives the
same read-only credentials, enabled-source list and reliability weights.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

from dotenv import load_dotenv

SOURCE_IDS: Tuple[str, ...] = ("airnow", "google", "openweather", "waqi", "purpleair", "microsoft")

API_KEY_ENV = {
    "airnow": "AIRNOW_API_KEY",
    "google": "GOOGLE_MAPS_API_KEY",
    "openweather": "OPENWEATHER_API_KEY",
    "waqi": "WAQI_API_KEY",
    "purpleair": "PURPLEAIR_API_KEY",
    "microsoft": "AZURE_MAPS_API_KEY",
}

# Official government feed first, then the dense sensor network, then the
# commercial and global-index providers.
DEFAULT_WEIGHTS: Dict[str, float] = {
    "airnow": 0.30,
    "purpleair": 0.25,
    "google": 0.15,
    "microsoft": 0.15,
    "waqi": 0.10,
    "openweather": 0.05,
}

# Preferred source when two or fewer sources disagree strongly.  Azure Maps is
# not ranked: paired with any ranked source it loses, even to openweather.
DEFAULT_PRIORITY: Tuple[str, ...] = ("airnow", "google", "purpleair", "waqi", "openweather")


@dataclass(frozen=True)
class Settings:
    api_keys: Mapping[str, str] = field(default_factory=dict)
    enabled_sources: Tuple[str, ...] = SOURCE_IDS
    http_timeout: float = 20.0
    weights: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    priority: Tuple[str, ...] = DEFAULT_PRIORITY

    def api_key(self, source_id: str) -> Optional[str]:
        return self.api_keys.get(source_id) or None


def parse_sources(value: str) -> Tuple[str, ...]:
    """Parse a comma-separated list of source ids, preserving order."""
    sources = []
    for item in value.split(","):
        item = item.strip().lower()
        if not item:
            continue
        if item not in SOURCE_IDS:
            raise ValueError(f"Unknown source '{item}'; expected one of {', '.join(SOURCE_IDS)}")
        if item not in sources:
            sources.append(item)
    return tuple(sources)


def parse_weights(value: str) -> Dict[str, float]:
    """Parse ``id=weight`` pairs into a weight table.

    Sources not mentioned keep their default weight.
    """
    weights = dict(DEFAULT_WEIGHTS)
    for pair in value.split(","):
        if not pair.strip():
            continue
        source_id, sep, raw = pair.partition("=")
        source_id = source_id.strip().lower()
        if not sep or source_id not in SOURCE_IDS:
            raise ValueError(f"Invalid weight entry '{pair.strip()}'")
        weight = float(raw)
        if weight < 0:
            raise ValueError(f"Weight for '{source_id}' must be non-negative")
        weights[source_id] = weight
    return weights


def load_settings(env: Optional[Mapping[str, str]] = None, dotenv: bool = True) -> Settings:
    """Build :class:`Settings` from environment variables.

    When ``env`` is omitted the process environment is used, after loading
    the ``.env`` file named by ``AQ_ENV_FILE`` (default: ``.env`` in the
    working directory).  Real environment variables win over the file.
    """
    if env is None:
        env_file = Path(os.getenv("AQ_ENV_FILE", ".env"))
        if dotenv and env_file.exists():
            load_dotenv(env_file, override=False)
        env = os.environ
    api_keys = {sid: env[var] for sid, var in API_KEY_ENV.items() if env.get(var)}
    enabled = env.get("AQ_ENABLED_SOURCES")
    timeout = env.get("AQ_HTTP_TIMEOUT")
    weights = env.get("AQ_SOURCE_WEIGHTS")
    return Settings(
        api_keys=api_keys,
        enabled_sources=parse_sources(enabled) if enabled is not None else SOURCE_IDS,
        http_timeout=float(timeout) if timeout else 20.0,
        weights=parse_weights(weights) if weights else dict(DEFAULT_WEIGHTS),
    )
