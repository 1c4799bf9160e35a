"""
Claims warehouse schema definitions using SQLAlchemy ORM.

This module mirrors the two warehouse views the cohort is extracted from:
- Eligibility: one row per recipient per coverage span per calendar year
- Claim: one row per billed service line, pharmacy fills included
"""

from datetime import date
from typing import Optional
from sqlalchemy import BigInteger, Date, Float, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all warehouse models."""
    pass


class Eligibility(Base):
    """
    Medicaid eligibility spans (vEligibility).

    A recipient can have several spans in a calendar year; the cohort
    builder collapses them to one.
    """
    __tablename__ = "eligibility"

    eligibility_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    cal_year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    medicaid_recipient_id: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    gender: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    race1: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    race2: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    hispanic_origin_name: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    birth_date: Mapped[date] = mapped_column(Date, nullable=False)
    spoken_lng_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    fpl_prcntg: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    rac_code: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rac_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    from_date: Mapped[date] = mapped_column(Date, nullable=False)
    to_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_reason: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    coverage_type_ind: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    __table_args__ = (
        Index("idx_elig_year_birth", "cal_year", "birth_date"),
    )


class Claim(Base):
    """
    Medicaid claim lines (vClaims).

    Medical lines carry diagnosis, revenue and place-of-service fields;
    pharmacy lines (claim type 24) carry the NDC and fill date.
    """
    __tablename__ = "claims"

    claim_line_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    medicaid_recipient_id: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    cal_year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    clm_type_cid: Mapped[int] = mapped_column(Integer, nullable=False)
    primary_diagnosis_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    diagnosis_code_2: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    diagnosis_code_3: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    diagnosis_code_4: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    diagnosis_code_5: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    revenue_code: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)
    place_of_service: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    from_srvc_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    ndc: Mapped[Optional[str]] = mapped_column(String(11), nullable=True)
    ndc_desc: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    prscrptn_filled_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    drug_dosage: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    __table_args__ = (
        Index("idx_claims_year_type", "cal_year", "clm_type_cid"),
    )
