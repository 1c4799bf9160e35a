"""
Asthma Risk - Pediatric asthma utilization risk from Medicaid claims

This package builds a one-row-per-child risk table for Medicaid children
with asthma (prior utilization, medication ratio, demographics and
geography) and fits logistic models of next-year hospital, ED and urgent
care use.
"""

__version__ = "0.1.0"

from .database import Database, create_engine_from_config
from .claims_schema import Eligibility, Claim
from .code_sets import CodeSet, DIAGNOSIS_CODE_SETS
from .config import RunConfig, load_run_config
from .errors import AsthmaRiskError, DataIntegrityError, ExtractionError, RecodeDomainError
from .cohort import build_cohort, collapse_eligibility, qualifying_ids
from .claims_features import count_events
from .medications import medication_ratio
from .demographics import enrich_demographics
from .geography import zip_risk
from .risk_table import assemble_risk_table
from .modeling import ModelSpec, ModelResult, fit_model, compare_models, default_model_specs
from .pipeline import build_risk_table, run_models

__all__ = [
    "Database",
    "create_engine_from_config",
    "Eligibility",
    "Claim",
    "CodeSet",
    "DIAGNOSIS_CODE_SETS",
    "RunConfig",
    "load_run_config",
    "AsthmaRiskError",
    "DataIntegrityError",
    "ExtractionError",
    "RecodeDomainError",
    "build_cohort",
    "collapse_eligibility",
    "qualifying_ids",
    "count_events",
    "medication_ratio",
    "enrich_demographics",
    "zip_risk",
    "assemble_risk_table",
    "ModelSpec",
    "ModelResult",
    "fit_model",
    "compare_models",
    "default_model_specs",
    "build_risk_table",
    "run_models",
]
