"""
Per-child utilization counts from asthma claim lines.

Counts are built for each calendar year and in two diagnosis variants:
"any diagnosis" (every asthma claim line, since the extract is already
restricted to asthma codes) and "primary diagnosis" (the principal
diagnosis field itself carries the asthma code). Column names follow the
analysis conventions, e.g. hospcnt14, EDcntprim15.

Counts are never missing: a child without a matching line has a count of 0.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable

import numpy as np
import pandas as pd

from .code_sets import (
    ASTHMA,
    CLAIM_TYPES,
    CodeSet,
    DIAGNOSIS_COLUMNS,
    ED_REVENUE_CODES,
    PRIMARY_DIAGNOSIS_COLUMN,
    URGENT_CARE_PLACE_OF_SERVICE,
)
from .cohort import assert_unique
from .config import year_suffix
from .errors import DataIntegrityError

logger = logging.getLogger(__name__)


def normalize_revenue_code(codes: pd.Series) -> pd.Series:
    """Revenue codes as zero-padded 4-character strings (450 -> '0450')."""
    codes = codes.astype("string").str.strip()
    codes = codes.str.replace(r"\.0$", "", regex=True)
    return codes.str.zfill(4)


def diagnosis_mask(claims: pd.DataFrame, column: str, code_set: CodeSet = ASTHMA) -> pd.Series:
    """True where one diagnosis field starts with a code-set prefix."""
    prefixes = (
        claims[column].astype("string").str.strip().str[:code_set.prefix_length].str.upper()
    )
    return prefixes.isin(code_set.prefixes).fillna(False).astype(bool)


def asthma_dx_mask(claims: pd.DataFrame, code_set: CodeSet = ASTHMA) -> pd.Series:
    """True where any of the five diagnosis fields matches."""
    mask = pd.Series(False, index=claims.index)
    for column in DIAGNOSIS_COLUMNS:
        mask |= diagnosis_mask(claims, column, code_set)
    return mask


def primary_dx_mask(claims: pd.DataFrame, code_set: CodeSet = ASTHMA) -> pd.Series:
    """True where the primary diagnosis field matches."""
    return diagnosis_mask(claims, PRIMARY_DIAGNOSIS_COLUMN, code_set)


@dataclass(frozen=True)
class EventDefinition:
    """
    A countable utilization event.

    Attributes:
        prefix: Column name prefix (hosp -> hospcnt14)
        description: Human-readable description
        predicate: Claim lines -> boolean Series marking the event
    """
    prefix: str
    description: str
    predicate: Callable[[pd.DataFrame], pd.Series]


EVENTS = [
    EventDefinition(
        "hosp", "Inpatient hospitalizations",
        lambda c: c["clm_type_cid"] == CLAIM_TYPES["inpatient"],
    ),
    EventDefinition(
        "ED", "Emergency department visits",
        lambda c: normalize_revenue_code(c["revenue_code"]).isin(ED_REVENUE_CODES).fillna(False),
    ),
    EventDefinition(
        "urg", "Urgent care visits",
        lambda c: c["place_of_service"] == URGENT_CARE_PLACE_OF_SERVICE,
    ),
    EventDefinition(
        "well", "Well-child checks",
        lambda c: c["clm_type_cid"] == CLAIM_TYPES["preventive"],
    ),
    EventDefinition(
        "asthma", "All asthma claim lines",
        lambda c: pd.Series(True, index=c.index),
    ),
]


def count_column(prefix: str, year: int, primary: bool = False) -> str:
    """Name of an event count column, e.g. ('ED', 2015, True) -> 'EDcntprim15'."""
    return f"{prefix}cnt{'prim' if primary else ''}{year_suffix(year)}"


def count_events(
    claims: pd.DataFrame,
    years: Iterable[int],
    child_ids: Iterable,
    events: list[EventDefinition] = EVENTS
) -> pd.DataFrame:
    """
    Count utilization events per child, year and diagnosis variant.

    Args:
        claims: Asthma claim lines (see extract.CLAIM_COLUMNS)
        years: Calendar years to count
        child_ids: Children to report; each gets exactly one row
        events: Event definitions to count

    Returns:
        DataFrame with child_id and one int64 column per
        (event, year, variant), zero-filled
    """
    ids = pd.DataFrame({"child_id": list(child_ids)})
    assert_unique(ids, "child_id", "child ids for event counts")

    claims = claims[claims["child_id"].isin(ids["child_id"])]
    primary = primary_dx_mask(claims)

    flags = {}
    for year in years:
        in_year = claims["cal_year"] == year
        for event in events:
            hit = in_year & event.predicate(claims)
            flags[count_column(event.prefix, year)] = hit
            flags[count_column(event.prefix, year, primary=True)] = hit & primary

    indicators = pd.DataFrame(flags, index=claims.index).astype("int64")
    indicators["child_id"] = claims["child_id"]
    counts = indicators.groupby("child_id").sum()

    counts = counts.reindex(pd.Index(ids["child_id"], name="child_id"), fill_value=0)
    return counts.astype("int64").reset_index()


def weighted_encounters(hospitalizations, ed_visits, weight: int = 3):
    """Weighted encounter count: hospitalizations * weight + ED visits."""
    return hospitalizations * weight + ed_visits


def add_encounter_composites(
    table: pd.DataFrame,
    years: Iterable[int],
    weight: int = 3
) -> pd.DataFrame:
    """
    Add asthmaenc{yy} and asthmaencprim{yy} weighted encounter counts.

    Args:
        table: Table holding hospcnt/EDcnt columns for each year
        years: Years to build composites for
        weight: Weight of a hospitalization relative to an ED visit

    Returns:
        Copy of table with composite columns added
    """
    table = table.copy()
    for year in years:
        yy = year_suffix(year)
        for primary in (False, True):
            variant = "prim" if primary else ""
            table[f"asthmaenc{variant}{yy}"] = weighted_encounters(
                table[count_column("hosp", year, primary)],
                table[count_column("ED", year, primary)],
                weight,
            )
    return table


def add_non_asthma_counts(table: pd.DataFrame, year: int) -> pd.DataFrame:
    """
    Add hospnonasth{yy} and EDnonasth{yy}: all-cause minus asthma counts.

    Children missing from the all-cause aggregate keep a missing value.

    Raises:
        DataIntegrityError: If any difference is negative, which means the
            all-cause aggregate is stale relative to the asthma claims
    """
    yy = year_suffix(year)
    table = table.copy()
    hosp_non = table["hosp"].astype("Int64") - table[count_column("hosp", year)]
    ed_non = table["ED"].astype("Int64") - table[count_column("ED", year)]

    negative = ((hosp_non < 0) | (ed_non < 0)).fillna(False)
    if negative.any():
        sample = table.loc[negative, "child_id"].head(5).tolist()
        raise DataIntegrityError(
            f"{int(negative.sum())} child(ren) have more asthma than all-cause "
            f"hospital/ED events in {year}, e.g. {sample}"
        )

    table[f"hospnonasth{yy}"] = hosp_non
    table[f"EDnonasth{yy}"] = ed_non
    return table


def recode_hospitalization_count(counts: pd.Series) -> pd.Series:
    """Bin hospitalization counts: 0 -> 0, 1-2 -> 1, 3 or more -> 2."""
    conditions = [counts == 0, counts.between(1, 2), counts >= 3]
    return pd.Series(
        np.select(conditions, [0, 1, 2]), index=counts.index, dtype="int64"
    )
