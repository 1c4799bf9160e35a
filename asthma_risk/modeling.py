"""
Logistic models of next-year asthma utilization.

Models are described by ModelSpec (outcome, predictors, categorical
predictors, and a row subset) and fit with statsmodels on an explicit
DataFrame. Rows missing any model variable are dropped before fitting and
the count is reported, so missing values never enter the model as zeros.

Children with an asthma hospitalization or ED visit in the baseline year
are presumed high risk; the main models exclude them and m4 looks at them
separately.
"""

import logging
import warnings
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

import numpy as np
import pandas as pd
import statsmodels.formula.api as smf
from scipy import stats

from .config import RunConfig

logger = logging.getLogger(__name__)


@dataclass
class ModelSpec:
    """
    A logistic model to fit.

    Attributes:
        name: Short identifier (m1, m2, ...)
        outcome: Binary outcome column
        predictors: Predictor columns, in formula order
        categorical: Predictors entered as factors, mapped to their
            reference level (None for the lowest level)
        subset: Row filter in DataFrame.query syntax, or None for all rows
        description: Human-readable description
    """
    name: str
    outcome: str
    predictors: list[str]
    categorical: dict[str, Optional[int]] = field(default_factory=dict)
    subset: Optional[str] = None
    description: str = ""

    @property
    def variables(self) -> list[str]:
        return [self.outcome, *self.predictors]

    @property
    def formula(self) -> str:
        terms = []
        for predictor in self.predictors:
            if predictor not in self.categorical:
                terms.append(predictor)
            elif self.categorical[predictor] is None:
                terms.append(f"C({predictor})")
            else:
                terms.append(
                    f"C({predictor}, Treatment(reference={self.categorical[predictor]}))"
                )
        return f"{self.outcome} ~ " + " + ".join(terms)


@dataclass
class ModelResult:
    """
    Fitted model diagnostics.

    Attributes:
        name: Spec name
        formula: Formula that was fit
        nobs: Rows used in the fit
        n_dropped: Rows in the subset dropped for missing values
        coefficients: Per-term coef, se, z, pval, confidence limits and odds ratios
        llf: Log-likelihood
        llnull: Log-likelihood of the intercept-only model
        llr: Likelihood ratio chi-squared against the null model
        llr_pvalue: P-value of llr
        prsquared: McFadden's pseudo R-squared
        aic: Akaike information criterion
        bic: Bayesian information criterion
        df_model: Model degrees of freedom
        converged: Whether the optimizer converged
        warnings: Warnings raised while fitting
        fit: The statsmodels results object
    """
    name: str
    formula: str
    nobs: int
    n_dropped: int
    coefficients: pd.DataFrame
    llf: float
    llnull: float
    llr: float
    llr_pvalue: float
    prsquared: float
    aic: float
    bic: float
    df_model: float
    converged: bool
    warnings: list[str] = field(default_factory=list)
    fit: Any = field(default=None, repr=False)


@dataclass
class LikelihoodRatioTest:
    """Likelihood ratio test between two nested models."""
    restricted: str
    full: str
    statistic: float
    df: float
    p_value: float


def model_frame(table: pd.DataFrame, spec: ModelSpec) -> tuple[pd.DataFrame, int]:
    """
    Rows and columns a spec is fit on.

    Args:
        table: Risk table
        spec: Model specification

    Returns:
        (complete-case frame with plain numpy dtypes, rows dropped as missing)
    """
    missing = [v for v in spec.variables if v not in table.columns]
    if missing:
        raise ValueError(f"{spec.name}: table lacks column(s) {missing}")

    rows = table.query(spec.subset, engine="python") if spec.subset else table
    frame = rows[spec.variables]
    complete = frame.dropna()

    converted = {}
    for column in complete.columns:
        if pd.api.types.is_integer_dtype(complete[column]) or pd.api.types.is_bool_dtype(complete[column]):
            converted[column] = complete[column].astype("int64")
        else:
            converted[column] = complete[column].astype("float64")
    return pd.DataFrame(converted, index=complete.index), len(frame) - len(complete)


def coefficient_table(fit) -> pd.DataFrame:
    """Coefficients, standard errors, Wald tests, and odds ratios with 95% CIs."""
    conf_int = fit.conf_int()
    return pd.DataFrame({
        'variable': fit.params.index,
        'coef': fit.params.values,
        'se': fit.bse.values,
        'z': fit.tvalues.values,
        'pval': fit.pvalues.values,
        'ci_lower': conf_int[0].values,
        'ci_upper': conf_int[1].values,
        'or': np.exp(fit.params.values),
        'or_ci_lower': np.exp(conf_int[0].values),
        'or_ci_upper': np.exp(conf_int[1].values),
    })


def fit_model(table: pd.DataFrame, spec: ModelSpec, maxiter: int = 100) -> ModelResult:
    """
    Fit a logistic model on an explicit dataset.

    Convergence and separation warnings are not suppressed: they are
    logged and returned on the result.

    Args:
        table: Risk table (or any DataFrame with the spec's columns)
        spec: Model specification
        maxiter: Maximum Newton iterations

    Returns:
        ModelResult with coefficients and likelihood diagnostics

    Raises:
        ValueError: If no rows remain or the outcome does not vary
    """
    frame, n_dropped = model_frame(table, spec)
    if n_dropped:
        logger.info("%s: dropped %d row(s) with missing values", spec.name, n_dropped)
    if frame.empty:
        raise ValueError(f"{spec.name}: no complete rows to fit")
    if frame[spec.outcome].nunique() < 2:
        raise ValueError(f"{spec.name}: outcome {spec.outcome} does not vary")

    logger.info("%s: fitting %s on %d rows", spec.name, spec.formula, len(frame))
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        fit = smf.logit(spec.formula, data=frame).fit(disp=0, maxiter=maxiter)
        # standard errors, odds ratios and the null-model refit are lazy and can warn too
        coefficients = coefficient_table(fit)
        llnull = float(fit.llnull)

    messages = [f"{w.category.__name__}: {w.message}" for w in caught]
    for message in messages:
        logger.warning("%s: %s", spec.name, message)

    converged = bool(fit.mle_retvals.get("converged", True))
    if not converged:
        logger.warning("%s: maximum likelihood did not converge", spec.name)

    return ModelResult(
        name=spec.name,
        formula=spec.formula,
        nobs=int(fit.nobs),
        n_dropped=n_dropped,
        coefficients=coefficients,
        llf=float(fit.llf),
        llnull=llnull,
        llr=float(fit.llr),
        llr_pvalue=float(fit.llr_pvalue),
        prsquared=float(fit.prsquared),
        aic=float(fit.aic),
        bic=float(fit.bic),
        df_model=float(fit.df_model),
        converged=converged,
        warnings=messages,
        fit=fit,
    )


def compare_models(first: ModelResult, second: ModelResult) -> LikelihoodRatioTest:
    """
    Likelihood ratio test between two nested models.

    The model with fewer parameters is treated as the restricted one.

    Raises:
        ValueError: If the models were fit on different numbers of rows
            or have the same number of parameters
    """
    if first.nobs != second.nobs:
        raise ValueError(
            f"{first.name} and {second.name} were fit on different samples "
            f"({first.nobs} vs {second.nobs} rows)"
        )
    if first.df_model == second.df_model:
        raise ValueError(f"{first.name} and {second.name} have the same degrees of freedom")

    restricted, full = sorted((first, second), key=lambda r: r.df_model)
    statistic = 2 * (full.llf - restricted.llf)
    df = full.df_model - restricted.df_model
    return LikelihoodRatioTest(
        restricted=restricted.name,
        full=full.name,
        statistic=statistic,
        df=df,
        p_value=float(stats.chi2.sf(statistic, df)),
    )


def complete_cases(table: pd.DataFrame, specs: Iterable[ModelSpec]) -> pd.DataFrame:
    """Rows with every variable of every spec present, so nested models share a sample."""
    variables = []
    for spec in specs:
        variables.extend(v for v in spec.variables if v not in variables)
    return table.dropna(subset=variables)


def predictor_summary(table: pd.DataFrame, spec: ModelSpec) -> dict[str, pd.Series]:
    """
    Value counts of each predictor over the rows a spec is fit on.

    Returns:
        Mapping of predictor name to its value counts
    """
    frame, _ = model_frame(table, spec)
    return {
        predictor: frame[predictor].value_counts(dropna=False).sort_index()
        for predictor in spec.predictors
    }


def default_model_specs(config: RunConfig) -> dict[str, ModelSpec]:
    """
    The four models of the asthma risk analysis.

    m1: prior non-asthma utilization, asthma well-child checks, demographics
    m2: m1 plus AMR risk and reliever high use at the configured threshold
    m3: m2 without income group (often missing), reliever threshold at its highest
    m4: m3 on children with a baseline asthma event
    """
    yy = config.baseline_suffix
    utilization = [f"hospnonasth{yy}", f"EDnonasth{yy}", f"wellcnt{yy}"]
    categorical = {"agegrp": None, "race": 6, "fplgrp": None}
    no_baseline_events = f"hospcnt{yy} == 0 and EDcnt{yy} == 0"
    high_threshold = max(config.reliever_thresholds)

    m1_predictors = utilization + ["agegrp", "female", "race", "fplgrp", "hizip"]
    m2_predictors = m1_predictors + [
        f"amr{yy}risk", f"relieverhigh{config.model_reliever_threshold}",
    ]
    m3_predictors = utilization + [
        "agegrp", "female", "race", "hizip", f"amr{yy}risk", f"relieverhigh{high_threshold}",
    ]

    specs = [
        ModelSpec("m1", "outcome", m1_predictors, categorical, no_baseline_events,
                  "Prior utilization and demographics"),
        ModelSpec("m2", "outcome", m2_predictors, categorical, no_baseline_events,
                  "m1 plus asthma medication use"),
        ModelSpec("m3", "outcome", m3_predictors, categorical, no_baseline_events,
                  "m2 without income group"),
        ModelSpec("m4", "outcome", m3_predictors, categorical, "baseline == 1",
                  "m3 on children with a baseline asthma event"),
    ]
    return {spec.name: spec for spec in specs}


def fit_models(table: pd.DataFrame, specs: Iterable[ModelSpec]) -> dict[str, ModelResult]:
    """Fit several specs on the same table."""
    return {spec.name: fit_model(table, spec) for spec in specs}
