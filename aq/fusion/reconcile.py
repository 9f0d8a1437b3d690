"""Reconciliation of readings from several providers.

A single generic :func:`reconcile` handles any number of sources.  What
differs between source counts (reliability weights, strategy thresholds,
preferred source order) lives in a :class:`ReconcilePolicy` table, so adding
or removing a provider is a configuration change.

The AQI merge picks a strategy from the number of valid values and their
spread (``max - min``):

* valid count at or above the majority threshold: median above 60 points,
  weighted average above 40, plain average otherwise;
* three or more valid values below the majority threshold: the same split
  at 50 and 30 points;
* two valid values: the most authoritative source above 50 points, the plain
  mean otherwise.

Separately, a discrepancy is flagged whenever the spread exceeds 30 points,
whichever strategy was chosen.  Pollutants are always merged by a plain
rounded mean of the non-negative values.
"""
from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Sequence, Tuple

import structlog

from .config import DEFAULT_PRIORITY, DEFAULT_WEIGHTS
from .models import POLLUTANT_FIELDS, UNAVAILABLE, Confidence, Discrepancy, Pollutants, Reading, Strategy
from .utils import round_half_away


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StrategyTier:
    """Thresholds applied once at least ``min_count`` values are valid."""

    min_count: int
    median_above: float
    weighted_above: float


@dataclass(frozen=True)
class ReconcilePolicy:
    weights: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    priority: Tuple[str, ...] = DEFAULT_PRIORITY
    tiers: Tuple[StrategyTier, ...] = (StrategyTier(4, 60, 40), StrategyTier(3, 50, 30))
    favor_above: float = 50
    discrepancy_above: float = 30
    majority_threshold: int = 4

    @classmethod
    def for_sources(
        cls,
        source_ids: Sequence[str],
        weights: Optional[Mapping[str, float]] = None,
        priority: Optional[Sequence[str]] = None,
    ) -> "ReconcilePolicy":
        """Build the policy for a set of enabled sources.

        The majority threshold is all but one of the enabled sources, and
        never less than four (4 of 5, 5 of 6).
        """
        majority = max(4, len(source_ids) - 1)
        return cls(
            weights=dict(weights if weights is not None else DEFAULT_WEIGHTS),
            priority=tuple(priority if priority is not None else DEFAULT_PRIORITY),
            tiers=(StrategyTier(majority, 60, 40), StrategyTier(3, 50, 30)),
            majority_threshold=majority,
        )


@dataclass(frozen=True)
class Reconciliation:
    """Outcome of merging the successful readings."""

    aqi: float
    pollutants: Pollutants
    max_difference: float = 0
    strategy: Optional[Strategy] = None
    discrepancy: Optional[Discrepancy] = None


def weighted_average(values: Mapping[str, float], weights: Mapping[str, float]) -> float:
    """Weighted mean with weights renormalized over the sources present.

    Sources without a weight contribute nothing; if none of the present
    sources has a weight the plain mean is returned.
    """
    present = {sid: weights.get(sid, 0.0) for sid in values}
    total = sum(present.values())
    if total <= 0:
        logger.warning("no_weights_for_sources", sources=sorted(values))
        return statistics.fmean(values.values())
    return sum(values[sid] * w / total for sid, w in present.items())


def favored_source(source_ids: Sequence[str], priority: Sequence[str]) -> str:
    """Return the most authoritative source present, else the first one."""
    for sid in priority:
        if sid in source_ids:
            return sid
    return source_ids[0]


def merge_pollutants(readings: Sequence[Reading]) -> Pollutants:
    """Average each pollutant over the sources that report it."""
    merged: Dict[str, float] = {}
    for name in POLLUTANT_FIELDS:
        values = [getattr(r.pollutants, name) for r in readings]
        values = [v for v in values if v >= 0]
        merged[name] = round_half_away(statistics.fmean(values)) if values else UNAVAILABLE
    return Pollutants(**merged)


def _select(values: Dict[str, float], spread: float, policy: ReconcilePolicy) -> Tuple[float, Strategy, str]:
    count = len(values)
    tier = next((t for t in policy.tiers if count >= t.min_count), None)
    if tier is not None:
        if spread > tier.median_above:
            return (
                round_half_away(statistics.median(values.values())),
                Strategy.MEDIAN,
                f"Large variance ({spread:g}pts) across {count} sources. Using median value.",
            )
        if spread > tier.weighted_above:
            return (
                round_half_away(weighted_average(values, policy.weights)),
                Strategy.WEIGHTED_AVERAGE,
                f"Moderate variance ({spread:g}pts). Weighted average favoring official sources.",
            )
        return (
            round_half_away(statistics.fmean(values.values())),
            Strategy.AVERAGE,
            "Good agreement across sources.",
        )
    if spread > policy.favor_above:
        sid = favored_source(list(values), policy.priority)
        if sid in policy.priority:
            details = f"Large variance. Favoring {sid}."
        else:
            details = f"Large variance. Using {sid} (no preferred source available)."
        return values[sid], Strategy.FAVOR_MAJORITY, details
    return (
        round_half_away(statistics.fmean(values.values())),
        Strategy.WEIGHTED_AVERAGE,
        f"{count}-source average.",
    )


def reconcile(readings: Mapping[str, Reading], policy: Optional[ReconcilePolicy] = None) -> Reconciliation:
    """Merge the successful readings into one AQI and pollutant set.

    ``readings`` maps source id to that source's reading and should contain
    only sources whose adapter call succeeded.
    """
    policy = policy or ReconcilePolicy()
    pollutants = merge_pollutants(list(readings.values()))
    values = {sid: r.aqi for sid, r in readings.items() if r.aqi >= 0}

    if not values:
        return Reconciliation(aqi=UNAVAILABLE, pollutants=pollutants)
    if len(values) == 1:
        return Reconciliation(aqi=next(iter(values.values())), pollutants=pollutants)

    spread = max(values.values()) - min(values.values())
    logger.debug(
        "aqi_comparison",
        values=", ".join(f"{sid}={v:g}" for sid, v in values.items()),
        spread=spread,
    )
    aqi, strategy, details = _select(values, spread, policy)

    discrepancy = None
    if spread > policy.discrepancy_above:
        discrepancy = Discrepancy(detected=True, max_difference=spread, strategy=strategy, details=details)
        logger.info("aqi_discrepancy", spread=spread, strategy=strategy.value, aqi=aqi)
    return Reconciliation(
        aqi=aqi,
        pollutants=pollutants,
        max_difference=spread,
        strategy=strategy,
        discrepancy=discrepancy,
    )


def classify_confidence(
    success_count: int,
    discrepancy: Optional[Discrepancy],
    majority_threshold: int,
) -> Confidence:
    """Label the combined estimate from the success count and discrepancy."""
    if success_count == 0:
        return Confidence.LOW
    if success_count == 1:
        return Confidence.MEDIUM
    if discrepancy is not None and discrepancy.detected:
        return Confidence.MEDIUM if discrepancy.strategy is Strategy.MEDIAN else Confidence.CONFLICTING
    return Confidence.HIGH if success_count >= majority_threshold else Confidence.MEDIUM
