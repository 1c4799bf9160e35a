"""
Assembly of the one-row-per-child risk table.

Starting from the qualifying cohort, event counts, all-cause utilization,
demographics, medication features and ZIP risk are left-joined by child id
(ZIP risk by postal code). Composite and binary indicators are derived last:

    baseline     = any baseline hospitalization, ED or urgent care visit
    baselineprim = the same, primary-diagnosis counts
    outcome      = any follow-up hospitalization, ED or urgent care visit
    outcomeprim  = the same, primary-diagnosis counts
"""

import logging
from typing import Optional

import pandas as pd

from .claims_features import (
    add_encounter_composites,
    add_non_asthma_counts,
    count_column,
    count_events,
    recode_hospitalization_count,
)
from .cohort import assert_unique, qualifying_ids
from .config import RunConfig
from .demographics import enrich_demographics
from .errors import DataIntegrityError
from .geography import normalize_zip

logger = logging.getLogger(__name__)

INDICATOR_EVENTS = ("hosp", "ED", "urg")

NULLABLE_COUNT_COLUMNS = ("hosp", "ED", "urgent", "controltot", "relievertot")


def left_join(
    left: pd.DataFrame,
    right: pd.DataFrame,
    on: str,
    what: str,
    right_on: Optional[str] = None
) -> pd.DataFrame:
    """
    Left-join a lookup table that must hold at most one row per key.

    Raises:
        DataIntegrityError: If the right table repeats a key, or the join
            would overwrite an existing column
    """
    right_key = right_on or on
    overlap = (set(left.columns) & set(right.columns)) - {on, right_key}
    if overlap:
        raise DataIntegrityError(f"Joining {what} would duplicate column(s) {sorted(overlap)}")
    try:
        merged = left.merge(
            right, how="left", left_on=on, right_on=right_key, validate="many_to_one"
        )
    except pd.errors.MergeError as e:
        raise DataIntegrityError(f"Joining {what}: {e}") from e
    if right_key != on:
        merged = merged.drop(columns=right_key)
    return merged


def any_event(table: pd.DataFrame, year: int, primary: bool = False) -> pd.Series:
    """1 if any hospitalization, ED or urgent care count for the year is positive."""
    columns = [count_column(prefix, year, primary) for prefix in INDICATOR_EVENTS]
    return (table[columns] > 0).any(axis=1).astype("int64")


def derive_indicators(
    table: pd.DataFrame,
    baseline_year: int,
    followup_year: int
) -> pd.DataFrame:
    """Add baseline, baselineprim, outcome and outcomeprim."""
    table = table.copy()
    table["baseline"] = any_event(table, baseline_year)
    table["baselineprim"] = any_event(table, baseline_year, primary=True)
    table["outcome"] = any_event(table, followup_year)
    table["outcomeprim"] = any_event(table, followup_year, primary=True)
    return table


def assemble_risk_table(
    cohort: pd.DataFrame,
    asthma_claims: pd.DataFrame,
    all_cause: pd.DataFrame,
    medication_table: pd.DataFrame,
    zip_table: pd.DataFrame,
    config: RunConfig
) -> pd.DataFrame:
    """
    Build the analytic table for the qualifying cohort.

    Args:
        cohort: Output of cohort.build_cohort
        asthma_claims: Asthma claim lines for the baseline and follow-up years
        all_cause: Baseline all-cause utilization (child_id, hosp, ED, urgent)
        medication_table: Output of medications.medication_ratio
        zip_table: Output of geography.zip_risk
        config: Run configuration

    Returns:
        DataFrame with exactly one row per qualifying child
    """
    baseline_year, followup_year = config.years
    ids = qualifying_ids(asthma_claims, cohort, baseline_year)

    table = count_events(asthma_claims, config.years, ids)
    table = left_join(table, all_cause, "child_id", "all-cause utilization")

    demographics = enrich_demographics(cohort, baseline_year, config.strict_recodes)
    demographics["zip"] = normalize_zip(demographics["zip"])
    table = left_join(table, demographics, "child_id", "demographics")
    table = left_join(table, medication_table, "child_id", "medication ratio")
    table = left_join(table, zip_table, "zip", "ZIP risk", right_on="zipcode")

    for column in NULLABLE_COUNT_COLUMNS:
        table[column] = table[column].astype("Int64")

    table = add_non_asthma_counts(table, baseline_year)
    table = add_encounter_composites(table, config.years, config.encounter_weight)
    table[f"hospcnt{config.followup_suffix}r"] = recode_hospitalization_count(
        table[count_column("hosp", followup_year)]
    )
    table = derive_indicators(table, baseline_year, followup_year)

    assert_unique(table, "child_id", "risk table")
    if len(table) != len(ids):
        raise DataIntegrityError(
            f"Risk table has {len(table)} rows for {len(ids)} qualifying children"
        )

    logger.info(
        "Risk table: %d children, %d with a baseline event, %d with an outcome event",
        len(table), int(table["baseline"].sum()), int(table["outcome"].sum()),
    )
    return table
