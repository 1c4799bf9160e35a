"""
End-to-end run: extract, build the cohort, assemble the risk table, fit models.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import pandas as pd
from sqlalchemy.orm import Session

from .cohort import build_cohort, qualifying_ids
from .config import RunConfig
from .extract import (
    extract_all_cause_utilization,
    extract_asthma_claims,
    extract_baseline_eligibility,
    extract_followup_ids,
    extract_pharmacy_fills,
)
from .geography import load_zip_reference
from .medications import load_medication_reference, medication_ratio
from .modeling import (
    LikelihoodRatioTest,
    ModelResult,
    compare_models,
    complete_cases,
    default_model_specs,
    fit_models,
)
from .risk_table import assemble_risk_table

logger = logging.getLogger(__name__)


@dataclass
class ModelRun:
    """Results of the default models and the m1 vs m2 comparison."""
    results: dict[str, ModelResult]
    comparison: Optional[LikelihoodRatioTest] = None
    notes: list[str] = field(default_factory=list)


def build_risk_table(
    session: Session,
    config: RunConfig,
    medication_reference: Optional[pd.DataFrame] = None,
    zip_reference: Optional[pd.DataFrame] = None
) -> pd.DataFrame:
    """
    Build the risk table from the claims warehouse.

    Args:
        session: SQLAlchemy session on the warehouse
        config: Run configuration
        medication_reference: Classified medication list; loaded from
            config.medication_reference when not given
        zip_reference: ZIP risk table; loaded from config.zip_reference
            when not given

    Returns:
        One row per qualifying child
    """
    if medication_reference is None:
        if not config.medication_reference:
            raise ValueError("No medication reference given or configured")
        medication_reference = load_medication_reference(config.medication_reference)
    if zip_reference is None:
        if not config.zip_reference:
            raise ValueError("No ZIP reference given or configured")
        zip_reference = load_zip_reference(config.zip_reference)

    baseline_year, followup_year = config.years
    # both years use the baseline birth window, so children aging out stay matched
    birth_start, birth_end = config.birth_date_range(baseline_year)

    baseline_elig = extract_baseline_eligibility(session, baseline_year, birth_start, birth_end)
    followup_ids = extract_followup_ids(session, followup_year, birth_start, birth_end)
    cohort = build_cohort(baseline_elig, followup_ids)

    all_cause = extract_all_cause_utilization(session, baseline_year)
    asthma_claims = extract_asthma_claims(session, config.years)

    fills = extract_pharmacy_fills(session, config.years)
    fills = fills[fills["child_id"].isin(qualifying_ids(asthma_claims, cohort, baseline_year))]
    medications = medication_ratio(
        fills, medication_reference, baseline_year, config.reliever_thresholds
    )

    return assemble_risk_table(
        cohort, asthma_claims, all_cause, medications, zip_reference, config
    )


def run_models(table: pd.DataFrame, config: RunConfig) -> ModelRun:
    """
    Fit the default models, then compare m1 and m2 on their shared sample.

    Each model is fit on its own complete cases; the likelihood ratio test
    refits both on the rows complete for both.
    """
    specs = default_model_specs(config)
    run = ModelRun(results=fit_models(table, specs.values()))

    shared = complete_cases(table, [specs["m1"], specs["m2"]])
    nested = fit_models(shared, [specs["m1"], specs["m2"]])
    run.comparison = compare_models(nested["m1"], nested["m2"])
    run.notes.append(
        f"m1 vs m2 compared on {nested['m1'].nobs} rows complete for both models"
    )

    for result in run.results.values():
        run.notes.extend(f"{result.name}: {w}" for w in result.warnings)
    for result in nested.values():
        run.notes.extend(f"{result.name} (shared sample): {w}" for w in result.warnings)
    return run
