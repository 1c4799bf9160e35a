"""
Geographic risk from the ZIP code reference.

Each ZIP maps to a health planning area (HPA). Areas are grouped into
three regions, and a fixed list of ZIPs is flagged for historically high
asthma-related utilization.
"""

import logging
from pathlib import Path

import pandas as pd

from .code_sets import DEFAULT_REGION, HIGH_UTILIZATION_ZIPS, REGION_AREAS
from .cohort import assert_unique

logger = logging.getLogger(__name__)


def normalize_zip(codes: pd.Series) -> pd.Series:
    """ZIP codes as 5-character strings (98001.0 -> '98001', '98001-1234' -> '98001')."""
    codes = codes.astype("string").str.strip()
    codes = codes.str.replace(r"\.0$", "", regex=True).str[:5]
    return codes.str.zfill(5).astype(object)


def region_code(area: pd.Series) -> pd.Series:
    """Region 1 or 2 for the listed areas, 3 for any other area, missing if no area."""
    labels = area.astype("string").str.strip()
    region = pd.Series(pd.NA, index=area.index, dtype="Int64")
    region[labels.notna()] = DEFAULT_REGION
    for code, areas in REGION_AREAS.items():
        region[labels.isin(areas).fillna(False).astype(bool)] = code
    return region


def high_utilization_zip(zipcode: pd.Series) -> pd.Series:
    """1 if the ZIP is on the high-utilization list, 0 otherwise, missing if no ZIP."""
    flag = zipcode.isin(HIGH_UTILIZATION_ZIPS).astype("Int64")
    flag[zipcode.isna()] = pd.NA
    return flag


def zip_risk(reference: pd.DataFrame) -> pd.DataFrame:
    """
    Add region and hizip to a ZIP reference.

    Args:
        reference: DataFrame with zipcode and hpa columns

    Returns:
        DataFrame with zipcode, hpa, region, hizip; one row per ZIP
    """
    df = reference[["zipcode", "hpa"]].copy()
    df["zipcode"] = normalize_zip(df["zipcode"])
    df = df.dropna(subset=["zipcode"])
    assert_unique(df, "zipcode", "ZIP reference")
    df["region"] = region_code(df["hpa"])
    df["hizip"] = high_utilization_zip(df["zipcode"])
    return df.reset_index(drop=True)


def load_zip_reference(path: str) -> pd.DataFrame:
    """
    Load the ZIP reference (Stata .dta or delimited text) and derive risk.

    Args:
        path: File with zipcode and hpa columns

    Returns:
        Output of zip_risk
    """
    if Path(path).suffix.lower() == ".dta":
        reference = pd.read_stata(path)
    else:
        reference = pd.read_csv(path, dtype={"zipcode": str})

    missing = {"zipcode", "hpa"} - set(reference.columns)
    if missing:
        raise ValueError(f"ZIP reference {path} lacks column(s): {sorted(missing)}")

    zips = zip_risk(reference)
    logger.info(
        "Loaded %d ZIP codes (%d high-utilization) from %s",
        len(zips), int(zips["hizip"].sum()), path,
    )
    return zips
