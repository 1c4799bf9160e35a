"""
Demographic recodes for the risk model.

Every recode is an ordered list of rules evaluated top to bottom; the
first rule whose predicate holds sets the value. Rows no rule matches are
missing, so a value is never defaulted into a category silently.

Race uses two passes:
1. Map the raw race label to {1..7}, 7 meaning other/unknown
2. For race 7 only, impute from ethnicity and spoken language
   (RACE_IMPUTATION_RULES, in priority order)
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import pandas as pd

from .code_sets import (
    ASIAN_LANGUAGES,
    ETHNICITY_LABELS,
    GENDER_LABELS,
    RACE_CODES,
    RACE_LABELS,
    RUSSIAN_LANGUAGE,
    SOMALI_LANGUAGE,
    SPANISH_LANGUAGE,
    VIETNAMESE_LANGUAGE,
)
from .errors import RecodeDomainError

logger = logging.getLogger(__name__)

AGE_GROUP_EDGES = (3, 5, 11, 18)
FPL_GROUP_EDGES = (1, 133, 199)  # last group runs to the observed maximum


@dataclass(frozen=True)
class Rule:
    """
    One step of an ordered recode.

    Attributes:
        name: Short identifier, used in logs and tests
        predicate: DataFrame -> boolean Series of rows the rule applies to
        value: Code assigned to those rows
    """
    name: str
    predicate: Callable[[pd.DataFrame], pd.Series]
    value: int


def apply_rules(df: pd.DataFrame, rules: Sequence[Rule]) -> pd.Series:
    """
    Evaluate rules top to bottom with first-match-wins semantics.

    Args:
        df: Rows to recode
        rules: Ordered rules

    Returns:
        Int64 Series; rows matched by no rule are missing
    """
    result = pd.Series(pd.NA, index=df.index, dtype="Int64")
    unmatched = pd.Series(True, index=df.index)
    for rule in rules:
        hit = unmatched & rule.predicate(df).fillna(False).astype(bool)
        result[hit] = rule.value
        unmatched &= ~hit
    return result


def _labels(df: pd.DataFrame, column: str) -> pd.Series:
    return df[column].astype("string").str.strip()


def label_rules(column: str, mapping: dict[str, int]) -> list[Rule]:
    """One exact-match rule per label of a mapping."""
    return [
        Rule(label, lambda df, label=label: _labels(df, column) == label, code)
        for label, code in mapping.items()
    ]


def recode_label(
    df: pd.DataFrame,
    column: str,
    mapping: dict[str, int],
    strict: bool = True
) -> pd.Series:
    """
    Recode a categorical label column through a fixed mapping.

    Missing labels stay missing. A present label outside the mapping is a
    domain violation.

    Raises:
        RecodeDomainError: On a domain violation when strict is True;
            otherwise the value is set missing and a warning is logged
    """
    coded = apply_rules(df, label_rules(column, mapping))
    unexpected = _labels(df, column).notna() & coded.isna()
    if unexpected.any():
        values = sorted(_labels(df, column)[unexpected].unique().tolist())
        if strict:
            raise RecodeDomainError(column, values)
        logger.warning(
            "Setting %d unexpected %s value(s) to missing: %s",
            int(unexpected.sum()), column, values,
        )
    return coded


def recode_ethnicity(df: pd.DataFrame, strict: bool = True) -> pd.Series:
    """'HISPANIC' -> 1, 'NOT HISPANIC' -> 0."""
    return recode_label(df, "hispanic", ETHNICITY_LABELS, strict)


def recode_gender(df: pd.DataFrame, strict: bool = True) -> pd.Series:
    """'Female' -> 1, 'Male' -> 0."""
    return recode_label(df, "gender", GENDER_LABELS, strict)


RACE_LABEL_RULES = label_rules("race_primary", RACE_LABELS) + [
    Rule("other", lambda df: pd.Series(True, index=df.index), RACE_CODES["other"]),
]

RACE_IMPUTATION_RULES = [
    Rule("hispanic_ethnicity", lambda df: df["hisp"] == 1, RACE_CODES["hispanic"]),
    Rule("asian_language", lambda df: _labels(df, "lang").isin(ASIAN_LANGUAGES), RACE_CODES["asian"]),
    Rule("somali_language", lambda df: _labels(df, "lang") == SOMALI_LANGUAGE, RACE_CODES["black"]),
    Rule("russian_language", lambda df: _labels(df, "lang") == RUSSIAN_LANGUAGE, RACE_CODES["white"]),
    Rule("spanish_language", lambda df: _labels(df, "lang") == SPANISH_LANGUAGE, RACE_CODES["hispanic"]),
]


def impute_race(race: pd.Series, df: pd.DataFrame) -> pd.Series:
    """
    Impute race for rows coded other/unknown (7).

    Args:
        race: Race codes
        df: Rows with hisp and lang columns, aligned with race

    Returns:
        Copy of race; rows no imputation rule matches stay 7
    """
    race = race.copy()
    unknown = (race == RACE_CODES["other"]).fillna(False).astype(bool)
    imputed = apply_rules(df[unknown], RACE_IMPUTATION_RULES)
    race.loc[unknown] = imputed.fillna(RACE_CODES["other"])
    return race


def recode_race(df: pd.DataFrame) -> pd.Series:
    """
    Race code from the primary race label, imputed where unknown.

    Args:
        df: Rows with race_primary, hisp (already recoded) and lang

    Returns:
        Int64 Series in {1..7}; White (6) is the model reference category
    """
    race = apply_rules(df, RACE_LABEL_RULES)
    return impute_race(race, df)


def recode_race_vietnamese(race: pd.Series, df: pd.DataFrame) -> pd.Series:
    """Race variant with Vietnamese speakers split out as 8, whatever their race."""
    race2 = race.copy()
    vietnamese = (_labels(df, "lang") == VIETNAMESE_LANGUAGE).fillna(False).astype(bool)
    race2[vietnamese] = RACE_CODES["vietnamese"]
    return race2


def bin_half_open(
    values: pd.Series,
    edges: Sequence[float],
    close_last: bool = False
) -> pd.Series:
    """
    Bin values into half-open intervals [edges[i], edges[i+1]) coded 1..n.

    Args:
        values: Numeric values
        edges: Increasing interval edges
        close_last: Make the last interval closed on the right

    Returns:
        Int64 Series; values outside every interval are missing
    """
    frame = pd.DataFrame({"value": pd.to_numeric(values, errors="coerce")}, index=values.index)
    rules = []
    last = len(edges) - 2
    for i, (low, high) in enumerate(zip(edges[:-1], edges[1:])):
        if close_last and i == last:
            predicate = lambda df, low=low, high=high: (df["value"] >= low) & (df["value"] <= high)
        else:
            predicate = lambda df, low=low, high=high: (df["value"] >= low) & (df["value"] < high)
        rules.append(Rule(f"group_{i + 1}", predicate, i + 1))
    return apply_rules(frame, rules)


def age_group(age: pd.Series) -> pd.Series:
    """[3,5) -> 1, [5,11) -> 2, [11,18) -> 3."""
    return bin_half_open(age, AGE_GROUP_EDGES)


# Program rule: children on RAC 1203 in FPL group 1 stay in group 1. It has
# no effect until the intended target group is confirmed.
FPL_OVERRIDES = [
    Rule("rac_1203", lambda df: (df["fplgrp"] == 1) & (df["rac_code"] == 1203), 1),
]


def fpl_group(fpl: pd.Series, rac_code: Optional[pd.Series] = None) -> pd.Series:
    """
    Percent of federal poverty level: [1,133) -> 1, [133,199) -> 2,
    [199, observed maximum] -> 3.
    """
    upper = pd.to_numeric(fpl, errors="coerce").max()
    groups = bin_half_open(fpl, (*FPL_GROUP_EDGES, upper), close_last=True)
    if rac_code is None:
        return groups

    frame = pd.DataFrame({"fplgrp": groups, "rac_code": rac_code}, index=fpl.index)
    for rule in FPL_OVERRIDES:
        hit = rule.predicate(frame).fillna(False).astype(bool)
        groups[hit] = rule.value
    return groups


def enrich_demographics(
    elig: pd.DataFrame,
    baseline_year: int,
    strict: bool = True
) -> pd.DataFrame:
    """
    Add model-ready demographic fields to collapsed eligibility.

    Args:
        elig: One row per child with gender, race_primary, hispanic, lang, dob,
            fpl and rac_code
        baseline_year: Year age is computed for
        strict: Raise on unexpected ethnicity/gender labels

    Returns:
        Copy of elig with hisp, female, race, race2, age, agegrp, fplgrp
    """
    df = elig.copy()
    df["hisp"] = recode_ethnicity(df, strict)
    df["female"] = recode_gender(df, strict)
    df["race"] = recode_race(df)
    df["race2"] = recode_race_vietnamese(df["race"], df)
    df["age"] = (baseline_year - pd.to_datetime(df["dob"]).dt.year).astype("Int64")
    df["agegrp"] = age_group(df["age"])
    df["fplgrp"] = fpl_group(df["fpl"], df["rac_code"])
    return df
