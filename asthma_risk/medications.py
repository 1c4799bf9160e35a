"""
Asthma medication ratio (AMR) from pharmacy fills.

Fills are classified as controller or reliever through the asthma NDC
reference list. For each child with at least one classified baseline fill:

    AMR = controller fills / (controller fills + reliever fills)

The ratio is undefined (NaN) when a child has classified fills but none of
them are controllers or relievers. Children with no classified fills get
no row at all and end up with missing medication fields after joining.
"""

import logging
from typing import Iterable, Union

import pandas as pd

from .code_sets import CONTROLLER_CATEGORIES, RELIEVER_CATEGORIES
from .cohort import assert_unique
from .config import year_suffix

logger = logging.getLogger(__name__)

AMR_RISK_CUTOFF = 0.5


def normalize_ndc(codes: pd.Series) -> pd.Series:
    """Drug codes as stripped strings, missing values kept missing."""
    return codes.astype("string").str.strip().astype(object)


def classify_medications(reference: pd.DataFrame) -> pd.DataFrame:
    """
    Add controller and reliever 0/1 flags to a medication reference.

    Args:
        reference: DataFrame with ndc and category columns

    Returns:
        Copy of reference with controller and reliever columns
    """
    reference = reference.copy()
    category = reference["category"].astype("string").str.strip().str.lower()
    reference["controller"] = category.isin(CONTROLLER_CATEGORIES).astype("int64")
    reference["reliever"] = category.isin(RELIEVER_CATEGORIES).astype("int64")
    return reference


def load_medication_reference(path: str) -> pd.DataFrame:
    """
    Load the asthma medication list (delimited text) and classify it.

    Args:
        path: CSV file with at least ndc and category columns

    Returns:
        DataFrame with ndc, category, controller, reliever

    Raises:
        ValueError: If a required column is missing
        DataIntegrityError: If a drug code is listed twice
    """
    reference = pd.read_csv(path, dtype={"ndc": str, "category": str})
    missing = {"ndc", "category"} - set(reference.columns)
    if missing:
        raise ValueError(f"Medication reference {path} lacks column(s): {sorted(missing)}")

    reference["ndc"] = normalize_ndc(reference["ndc"])
    reference = reference.dropna(subset=["ndc"])
    assert_unique(reference, "ndc", "medication reference")

    reference = classify_medications(reference)
    logger.info(
        "Loaded %d medications (%d controller, %d reliever) from %s",
        len(reference), reference["controller"].sum(), reference["reliever"].sum(), path,
    )
    return reference


def adherence_ratio(controllers: pd.Series, relievers: pd.Series) -> pd.Series:
    """Controller share of controller + reliever fills; NaN when both are 0."""
    total = controllers + relievers
    return controllers / total.where(total > 0)


def amr_risk(ratio: pd.Series) -> pd.Series:
    """
    Three-valued AMR risk flag.

    Returns:
        Int64 Series: 1 where ratio < 0.5, 0 where ratio >= 0.5,
        missing where the ratio is missing
    """
    risk = pd.Series(pd.NA, index=ratio.index, dtype="Int64")
    risk[ratio < AMR_RISK_CUTOFF] = 1
    risk[ratio >= AMR_RISK_CUTOFF] = 0
    return risk


def high_use(count: Union[int, float, pd.Series], threshold: int):
    """
    Flag reliever counts at or above a threshold.

    Works on a single count or a Series; missing counts stay missing.
    """
    if isinstance(count, pd.Series):
        return (count.astype("Float64") >= threshold).astype("Int64")
    if pd.isna(count):
        return pd.NA
    return int(count >= threshold)


def medication_ratio(
    fills: pd.DataFrame,
    reference: pd.DataFrame,
    baseline_year: int,
    thresholds: Iterable[int] = (3, 4, 5, 6)
) -> pd.DataFrame:
    """
    Compute medication totals, AMR and high-use flags per child.

    Args:
        fills: Pharmacy fills with child_id, cal_year, ndc
        reference: Classified medication reference
        baseline_year: Only fills from this year are counted
        thresholds: Reliever counts for which relieverhigh{t} flags are built

    Returns:
        DataFrame with child_id, controltot, relievertot, amr{yy},
        amr{yy}risk and relieverhigh{t}; one row per child with at least
        one classified fill
    """
    yy = year_suffix(baseline_year)
    fills = fills[fills["cal_year"] == baseline_year].copy()
    fills["ndc"] = normalize_ndc(fills["ndc"])

    classified = fills.merge(
        reference[["ndc", "controller", "reliever"]],
        on="ndc",
        how="inner",
        validate="many_to_one",
    )

    totals = (
        classified.groupby("child_id")
        .agg(controltot=("controller", "sum"), relievertot=("reliever", "sum"))
        .reset_index()
        .astype({"controltot": "int64", "relievertot": "int64"})
    )
    totals[f"amr{yy}"] = adherence_ratio(totals["controltot"], totals["relievertot"])
    totals[f"amr{yy}risk"] = amr_risk(totals[f"amr{yy}"])
    for threshold in thresholds:
        totals[f"relieverhigh{threshold}"] = high_use(totals["relievertot"], threshold)

    logger.info(
        "Medication ratio: %d children with classified fills in %d, %d with undefined AMR",
        len(totals), baseline_year, totals[f"amr{yy}"].isna().sum(),
    )
    return totals
