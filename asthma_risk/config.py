"""
Run configuration for the asthma risk pipeline.

Settings are read from a YAML file with optional sections:

    database:
      type: sqlite            # sqlite, postgresql or mssql
      path: ./claims.db
    cohort:
      baseline_year: 2014
      followup_year: 2015
      min_age: 3
      max_age: 17
    features:
      encounter_weight: 3
      reliever_thresholds: [3, 4, 5, 6]
      strict_recodes: true
    references:
      medication_reference: ./NDC493.csv
      zip_reference: ./zipgps.dta
    modeling:
      reliever_threshold: 3

Anything left out keeps its default.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

import yaml

SECTIONS = ("database", "cohort", "features", "references", "modeling")


def year_suffix(year: int) -> str:
    """Two-digit suffix used in feature column names (2014 -> '14')."""
    return f"{year % 100:02d}"


@dataclass
class RunConfig:
    """
    Parameters for one pipeline run.

    Attributes:
        baseline_year: Index year predictors are drawn from
        followup_year: Year the outcome is measured in
        min_age: Youngest age (in years, during the baseline year) included
        max_age: Oldest age included
        encounter_weight: Weight of a hospitalization relative to an ED visit
        reliever_thresholds: Reliever fill counts at which high-use flags are built
        model_reliever_threshold: Threshold used by the default model specs
        medication_reference: Path to the medication category CSV
        zip_reference: Path to the ZIP/area reference file
        strict_recodes: Raise on unexpected ethnicity/gender labels
        database: Connection settings (see database.create_engine_from_config)
    """
    baseline_year: int = 2014
    followup_year: int = 2015
    min_age: int = 3
    max_age: int = 17
    encounter_weight: int = 3
    reliever_thresholds: tuple[int, ...] = (3, 4, 5, 6)
    model_reliever_threshold: int = 3
    medication_reference: Optional[str] = None
    zip_reference: Optional[str] = None
    strict_recodes: bool = True
    database: dict[str, Any] = field(
        default_factory=lambda: {"type": "sqlite", "path": "./claims.db"}
    )

    def __post_init__(self):
        if self.followup_year <= self.baseline_year:
            raise ValueError("followup_year must be after baseline_year")
        if self.min_age > self.max_age:
            raise ValueError("min_age must not exceed max_age")
        # the modeled threshold always has a flag column to fit against
        thresholds = set(self.reliever_thresholds) | {self.model_reliever_threshold}
        self.reliever_thresholds = tuple(sorted(thresholds))

    @property
    def years(self) -> tuple[int, int]:
        return (self.baseline_year, self.followup_year)

    @property
    def baseline_suffix(self) -> str:
        return year_suffix(self.baseline_year)

    @property
    def followup_suffix(self) -> str:
        return year_suffix(self.followup_year)

    def birth_date_range(self, year: int) -> tuple[date, date]:
        """
        Birth dates of children whose age in `year` falls in the age window.

        Age is counted as calendar year minus birth year, so a 3-17 window
        in 2014 covers births from 1997-01-01 through 2011-12-31.
        """
        return (
            date(year - self.max_age, 1, 1),
            date(year - self.min_age, 12, 31),
        )


def load_run_config(config_path: str) -> RunConfig:
    """
    Create a RunConfig from a YAML config file.

    Args:
        config_path: Path to config.yaml file

    Returns:
        RunConfig with file values over defaults

    Raises:
        ValueError: If the file contains an unknown section
    """
    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    unknown = set(config) - set(SECTIONS)
    if unknown:
        raise ValueError(f"Unknown config section(s): {', '.join(sorted(unknown))}")

    kwargs: dict[str, Any] = {}
    if 'database' in config:
        kwargs['database'] = config['database']

    cohort = config.get('cohort') or {}
    for key in ('baseline_year', 'followup_year', 'min_age', 'max_age'):
        if key in cohort:
            kwargs[key] = int(cohort[key])

    features = config.get('features') or {}
    if 'encounter_weight' in features:
        kwargs['encounter_weight'] = int(features['encounter_weight'])
    if 'reliever_thresholds' in features:
        kwargs['reliever_thresholds'] = tuple(int(t) for t in features['reliever_thresholds'])
    if 'strict_recodes' in features:
        kwargs['strict_recodes'] = bool(features['strict_recodes'])

    references = config.get('references') or {}
    for key in ('medication_reference', 'zip_reference'):
        if key in references:
            kwargs[key] = references[key]

    modeling = config.get('modeling') or {}
    if 'reliever_threshold' in modeling:
        kwargs['model_reliever_threshold'] = int(modeling['reliever_threshold'])

    return RunConfig(**kwargs)
