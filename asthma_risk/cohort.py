"""
Cohort construction.

The cohort is every child in the age window who is eligible in both the
baseline and the follow-up year. The qualifying cohort further requires at
least one asthma-coded claim in the baseline year.
"""

import logging

import pandas as pd

from .errors import DataIntegrityError

logger = logging.getLogger(__name__)

SPAN_KEY = ["child_id", "from_date", "to_date"]


def assert_unique(df: pd.DataFrame, key: str, what: str) -> None:
    """
    Raise DataIntegrityError if `key` repeats in `df`.

    Args:
        df: Table to check
        key: Column expected to be unique
        what: Table description for the error message
    """
    duplicated = df[key][df[key].duplicated()]
    if len(duplicated) > 0:
        sample = duplicated.unique()[:5].tolist()
        raise DataIntegrityError(
            f"{what}: {duplicated.nunique()} duplicated {key} value(s), e.g. {sample}"
        )


def collapse_eligibility(elig: pd.DataFrame) -> pd.DataFrame:
    """
    Collapse eligibility spans to one row per child.

    Spans are ordered by child, then coverage start and end descending;
    the first span per child (the latest one) is kept. Exact duplicate
    rows are dropped first.

    Args:
        elig: Baseline eligibility spans with child_id, from_date, to_date

    Returns:
        DataFrame with exactly one row per child

    Raises:
        DataIntegrityError: If a child has two different spans with the
            same start and end dates, so the latest span is ambiguous
    """
    spans = elig.drop_duplicates()
    tied = spans[spans.duplicated(SPAN_KEY, keep=False)]
    if len(tied) > 0:
        sample = tied["child_id"].unique()[:5].tolist()
        raise DataIntegrityError(
            f"collapsed eligibility: {tied['child_id'].nunique()} child(ren) have "
            f"conflicting spans with the same dates, e.g. {sample}"
        )

    collapsed = (
        spans.sort_values(
            ["child_id", "from_date", "to_date"],
            ascending=[True, False, False],
        )
        .drop_duplicates("child_id", keep="first")
        .reset_index(drop=True)
    )
    logger.info(
        "Collapsed %d eligibility spans to %d children", len(elig), len(collapsed)
    )
    return collapsed


def build_cohort(baseline_elig: pd.DataFrame, followup_ids: pd.DataFrame) -> pd.DataFrame:
    """
    Match baseline children to the follow-up year.

    Only children present in both years are kept.

    Args:
        baseline_elig: Baseline eligibility spans (any number per child)
        followup_ids: Follow-up year ids in a child_id column

    Returns:
        One row per retained child carrying the baseline eligibility fields
    """
    baseline = collapse_eligibility(baseline_elig)
    followup = followup_ids[["child_id"]].drop_duplicates()

    cohort = baseline.merge(followup, on="child_id", how="inner", validate="one_to_one")
    logger.info(
        "Cohort: %d of %d baseline children also eligible in follow-up year",
        len(cohort), len(baseline),
    )
    return cohort


def qualifying_ids(
    asthma_claims: pd.DataFrame,
    cohort: pd.DataFrame,
    baseline_year: int
) -> pd.Series:
    """
    Ids of cohort children with at least one baseline-year asthma claim.

    Args:
        asthma_claims: Asthma claim lines with child_id and cal_year
        cohort: Output of build_cohort
        baseline_year: Baseline calendar year

    Returns:
        Sorted Series of child ids
    """
    baseline_claimants = asthma_claims.loc[
        asthma_claims["cal_year"] == baseline_year, "child_id"
    ].unique()
    ids = cohort.loc[cohort["child_id"].isin(baseline_claimants), "child_id"]
    ids = ids.sort_values().reset_index(drop=True)
    logger.info("Qualifying cohort: %d children with a baseline asthma claim", len(ids))
    return ids
