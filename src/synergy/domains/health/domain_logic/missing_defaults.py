"""Per-consumer default tables for absent or non-finite metric values.

Three callers share the Metric Normalizer but disagree on what "missing"
should mean:

* ``health_synergy`` — live scoring; an absent metric counts as a neutral
  normalized score of 70.
* ``biosignature_quality`` — weekly aggregate; absent sleep/readiness count as
  70, absent energy (glucose) as 75, absent metabolic load as 70. Recovery has
  no entry: it is derived from readiness and sleep quality instead.
* ``snapshot`` — persisted history; absent raw values are written as the
  explicit ``0`` "unknown" sentinel.

Tables can be overridden from a YAML file shaped like::

    health_synergy:
      glucose: 65
    biosignature_quality:
      energy: 80
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from synergy.domains.health.domain_logic.metric_models import (
    MetricKind,
    MissingValueDefaults,
    ScoringConfigError,
)

logger = logging.getLogger(__name__)

HEALTH_SYNERGY = "health_synergy"
BIOSIGNATURE_QUALITY = "biosignature_quality"
SNAPSHOT = "snapshot"

HEALTH_SYNERGY_DEFAULTS = MissingValueDefaults(
    HEALTH_SYNERGY, {kind.value: 70.0 for kind in MetricKind}
)

BIOSIGNATURE_QUALITY_DEFAULTS = MissingValueDefaults(
    BIOSIGNATURE_QUALITY,
    {
        "sleep_quality": 70.0,
        "readiness": 70.0,
        "energy": 75.0,
        "metabolic": 70.0,
    },
)

SNAPSHOT_DEFAULTS = MissingValueDefaults(
    SNAPSHOT, {kind.value: 0.0 for kind in MetricKind}
)

DEFAULT_TABLES: dict[str, MissingValueDefaults] = {
    table.consumer: table
    for table in (HEALTH_SYNERGY_DEFAULTS, BIOSIGNATURE_QUALITY_DEFAULTS, SNAPSHOT_DEFAULTS)
}


def get_defaults(
    consumer: str,
    tables: dict[str, MissingValueDefaults] | None = None,
) -> MissingValueDefaults:
    """Resolve the default table for a consumer.

    Raises:
        ScoringConfigError: If no table is registered under that name.
    """
    source = tables if tables is not None else DEFAULT_TABLES
    try:
        return source[consumer]
    except KeyError:
        raise ScoringConfigError(
            f"No missing-value defaults for consumer {consumer!r}. Known: {sorted(source)}"
        ) from None


def load_defaults_file(path: str | Path) -> dict[str, MissingValueDefaults]:
    """Merge YAML overrides onto the built-in tables.

    Unknown consumers and unknown keys are rejected so a typo cannot silently
    leave a built-in value in place.

    Raises:
        ScoringConfigError: If the file is unreadable or any value is invalid.
    """
    path = Path(path).expanduser()
    try:
        with open(path) as f:
            data: Any = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ScoringConfigError(f"Cannot read defaults file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ScoringConfigError(f"{path}: top level must be a mapping of consumers")

    tables = dict(DEFAULT_TABLES)
    for consumer, overrides in data.items():
        base = tables.get(consumer)
        if base is None:
            raise ScoringConfigError(f"{path}: unknown consumer {consumer!r}")
        if not isinstance(overrides, dict):
            raise ScoringConfigError(f"{path}: {consumer} must map keys to numbers")
        unknown = set(overrides) - set(base.values)
        if unknown:
            raise ScoringConfigError(
                f"{path}: unknown keys for {consumer}: {sorted(unknown)}"
            )
        tables[consumer] = base.with_overrides(overrides)
        logger.info("Loaded %d default override(s) for %s", len(overrides), consumer)

    return tables
