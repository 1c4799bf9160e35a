"""
Read-only extracts from the claims warehouse.

Each function issues one query and returns a pandas DataFrame keyed by
`child_id`. Queries that must return rows raise ExtractionError when they
come back empty, and any database error aborts the run the same way.
"""

import logging
import time
from datetime import date
from typing import Iterable

import pandas as pd
from sqlalchemy import and_, case, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from .claims_schema import Claim, Eligibility
from .code_sets import (
    ASTHMA,
    CLAIM_TYPES,
    DIAGNOSIS_COLUMNS,
    ED_REVENUE_CODES,
    URGENT_CARE_PLACE_OF_SERVICE,
)
from .errors import ExtractionError

logger = logging.getLogger(__name__)

ELIGIBILITY_COLUMNS = [
    "child_id", "cal_year", "gender", "race_primary", "race_secondary", "hispanic", "dob",
    "lang", "fpl", "rac_code", "rac_name", "from_date", "to_date",
    "end_reason", "coverage", "zip",
]

CLAIM_COLUMNS = [
    "child_id", "cal_year", "clm_type_cid", *DIAGNOSIS_COLUMNS,
    "revenue_code", "place_of_service", "from_srvc_date",
]

PHARMACY_COLUMNS = ["child_id", "cal_year", "ndc", "ndc_desc", "rx_date", "dose"]


def _run_query(
    description: str,
    query: Query,
    columns: list[str],
    required: bool = True
) -> pd.DataFrame:
    """Execute a query, time it, and return the rows as a DataFrame."""
    started = time.perf_counter()
    try:
        rows = query.all()
    except SQLAlchemyError as e:
        raise ExtractionError(f"{description} query failed: {e}") from e
    elapsed = time.perf_counter() - started

    df = pd.DataFrame([tuple(row) for row in rows], columns=columns)
    logger.info("Extracted %s: %d rows in %.1fs", description, len(df), elapsed)

    if df.empty:
        if required:
            raise ExtractionError(f"{description} query returned no rows")
        logger.warning("%s query returned no rows", description)
    return df


def extract_baseline_eligibility(
    session: Session,
    year: int,
    birth_start: date,
    birth_end: date
) -> pd.DataFrame:
    """
    Extract every eligibility span in the baseline year for children in the
    birth-date window.

    Args:
        session: SQLAlchemy session
        year: Baseline calendar year
        birth_start: Earliest birth date included
        birth_end: Latest birth date included

    Returns:
        DataFrame with ELIGIBILITY_COLUMNS, one row per coverage span,
        ordered by child, then most recent span first
    """
    query = (
        session.query(
            Eligibility.medicaid_recipient_id,
            Eligibility.cal_year,
            Eligibility.gender,
            Eligibility.race1,
            Eligibility.race2,
            Eligibility.hispanic_origin_name,
            Eligibility.birth_date,
            Eligibility.spoken_lng_name,
            Eligibility.fpl_prcntg,
            Eligibility.rac_code,
            Eligibility.rac_name,
            Eligibility.from_date,
            Eligibility.to_date,
            Eligibility.end_reason,
            Eligibility.coverage_type_ind,
            Eligibility.postal_code,
        )
        .filter(
            Eligibility.cal_year == year,
            Eligibility.birth_date.between(birth_start, birth_end),
        )
        .order_by(
            Eligibility.medicaid_recipient_id,
            Eligibility.from_date.desc(),
            Eligibility.to_date.desc(),
        )
    )
    return _run_query(f"{year} eligibility", query, ELIGIBILITY_COLUMNS)


def extract_followup_ids(
    session: Session,
    year: int,
    birth_start: date,
    birth_end: date
) -> pd.DataFrame:
    """Distinct ids of children eligible in the follow-up year."""
    query = (
        session.query(Eligibility.medicaid_recipient_id)
        .filter(
            Eligibility.cal_year == year,
            Eligibility.birth_date.between(birth_start, birth_end),
        )
        .distinct()
    )
    return _run_query(f"{year} eligibility ids", query, ["child_id"])


def extract_all_cause_utilization(session: Session, year: int) -> pd.DataFrame:
    """
    Count all-cause hospitalizations, ED visits and urgent care visits per
    child in one year.

    Returns:
        DataFrame with columns child_id, hosp, ED, urgent
    """
    hosp = func.sum(case((Claim.clm_type_cid == CLAIM_TYPES["inpatient"], 1), else_=0))
    # same forms normalize_revenue_code accepts: padded or not, surrounding
    # blanks, a trailing ".0" from float exports
    ed_codes = ED_REVENUE_CODES + [code.lstrip("0") for code in ED_REVENUE_CODES]
    ed_codes = ed_codes + [f"{code}.0" for code in ed_codes]
    revenue_code = func.ltrim(func.rtrim(Claim.revenue_code))
    ed = func.sum(case((revenue_code.in_(ed_codes), 1), else_=0))
    urgent = func.sum(
        case((Claim.place_of_service == URGENT_CARE_PLACE_OF_SERVICE, 1), else_=0)
    )
    query = (
        session.query(
            Claim.medicaid_recipient_id,
            hosp.label("hosp"),
            ed.label("ED"),
            urgent.label("urgent"),
        )
        .filter(Claim.cal_year == year)
        .group_by(Claim.medicaid_recipient_id)
    )
    df = _run_query(f"{year} all-cause utilization", query, ["child_id", "hosp", "ED", "urgent"])
    return df.astype({"hosp": "int64", "ED": "int64", "urgent": "int64"})


def extract_asthma_claims(
    session: Session,
    years: Iterable[int],
    prefixes: Iterable[str] = tuple(ASTHMA.prefixes)
) -> pd.DataFrame:
    """
    Extract claim lines where any of the five diagnosis fields carries an
    asthma code.

    Args:
        session: SQLAlchemy session
        years: Calendar years to include
        prefixes: Diagnosis code prefixes to match

    Returns:
        DataFrame with CLAIM_COLUMNS ordered by child and service date
    """
    years = list(years)
    dx_match = or_(*[
        getattr(Claim, column).like(f"{prefix}%")
        for column in DIAGNOSIS_COLUMNS
        for prefix in prefixes
    ])
    query = (
        session.query(
            Claim.medicaid_recipient_id,
            Claim.cal_year,
            Claim.clm_type_cid,
            *[getattr(Claim, column) for column in DIAGNOSIS_COLUMNS],
            Claim.revenue_code,
            Claim.place_of_service,
            Claim.from_srvc_date,
        )
        .filter(and_(Claim.cal_year.in_(years), dx_match))
        .order_by(Claim.medicaid_recipient_id, Claim.from_srvc_date)
    )
    label = "-".join(str(y) for y in years)
    return _run_query(f"{label} asthma claims", query, CLAIM_COLUMNS)


def extract_pharmacy_fills(session: Session, years: Iterable[int]) -> pd.DataFrame:
    """
    Extract pharmacy fills (claim type 24) for the given years.

    An empty result is logged but allowed: every child then has missing
    medication features.
    """
    years = list(years)
    query = (
        session.query(
            Claim.medicaid_recipient_id,
            Claim.cal_year,
            Claim.ndc,
            Claim.ndc_desc,
            Claim.prscrptn_filled_date,
            Claim.drug_dosage,
        )
        .filter(
            Claim.cal_year.in_(years),
            Claim.clm_type_cid == CLAIM_TYPES["pharmacy"],
        )
        .order_by(Claim.medicaid_recipient_id)
    )
    label = "-".join(str(y) for y in years)
    return _run_query(f"{label} pharmacy fills", query, PHARMACY_COLUMNS, required=False)
