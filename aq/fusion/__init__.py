"""Top-level package for combined_air_quality.

This package queries several independent air quality providers for a
coordinate, normalizes their incompatible scales, detects when they disagree
and synthesizes a single best-estimate reading with a confidence label.

The canonical public API is :func:`aq.fusion.engine.combine`; a command line
interface is defined in ``aq/fusion/cli.py``.
"""

from importlib.metadata import version as _get_version

from .engine import combine
from .models import Category, CombinedReading, Confidence, Reading, Strategy


def __getattr__(name: str):  # pragma: no cover
    if name == "__version__":
        return _get_version("combined-air-quality")
    raise AttributeError(name)


__all__ = [
    "combine",
    "Category",
    "CombinedReading",
    "Confidence",
    "Reading",
    "Strategy",
    "cli",
    "config",
    "engine",
    "errors",
    "fetch",
    "messages",
    "models",
    "normalize",
    "reconcile",
    "report",
    "sources",
    "validate",
    "utils",
]
