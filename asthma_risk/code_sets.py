"""
Code sets and reference enumerations for the asthma risk cohort.

This module defines the claim coding used to identify asthma diagnoses,
utilization events and medication classes, plus the fixed language, area
and ZIP enumerations used by the demographic and geographic recodes.

Note: Claim type and revenue codes follow the state Medicaid warehouse
the cohort was first built on. Validate them against your own claims
extract before running.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class CodeSet:
    """
    A set of diagnosis code prefixes representing a condition.

    Attributes:
        name: Human-readable name of the code set
        prefixes: Code prefixes; a code matches when it starts with any of them
        description: Detailed description
        code_systems: Code system each prefix belongs to (for reference)
        prefix_length: Number of leading characters compared
    """
    name: str
    prefixes: list[str]
    description: str = ""
    code_systems: list[str] = field(default_factory=list)
    prefix_length: int = 3

    def matches(self, code: Optional[str]) -> bool:
        """
        Check whether a single diagnosis code belongs to this set.

        Args:
            code: Raw diagnosis code, possibly missing

        Returns:
            True if the leading characters equal one of the prefixes
        """
        if not isinstance(code, str):
            return False
        return code.strip()[:self.prefix_length].upper() in self.prefixes


DIAGNOSIS_CODE_SETS = {
    "asthma": CodeSet(
        name="Asthma",
        prefixes=["493", "J45"],
        code_systems=["ICD-9-CM", "ICD-10-CM"],
        description="Asthma, all subtypes and severities",
    ),
}

ASTHMA = DIAGNOSIS_CODE_SETS["asthma"]

# Diagnosis fields on a claim line, primary first
DIAGNOSIS_COLUMNS = [
    "primary_diagnosis_code",
    "diagnosis_code_2",
    "diagnosis_code_3",
    "diagnosis_code_4",
    "diagnosis_code_5",
]
PRIMARY_DIAGNOSIS_COLUMN = DIAGNOSIS_COLUMNS[0]

# Claim type codes (CLM_TYPE_CID)
CLAIM_TYPES = {
    "pharmacy": 24,
    "preventive": 27,
    "inpatient": 31,
}

# Revenue codes billed for emergency department services
ED_REVENUE_CODES = ["0450", "0456", "0459", "0981"]

URGENT_CARE_PLACE_OF_SERVICE = "20 URGENT CARE FAC"

# Medication categories from the asthma NDC list
CONTROLLER_CATEGORIES = [
    "antiasthmatic combinations",
    "antibody inhibitor",
    "inhaled corticosteroids",
    "inhaled steroid combinations",
    "leukotriene modifiers",
    "mast cell stablizers",  # sic, as spelled in the NDC list
    "methylxanthines",
]

RELIEVER_CATEGORIES = [
    "short-acting inhaled beta-2 agonists",
]

# Spoken language labels used by the race imputation rules
ASIAN_LANGUAGES = ["Burmese", "Chinese", "Korean", "Vietnamese", "Tagalog"]
SOMALI_LANGUAGE = "Somali"
RUSSIAN_LANGUAGE = "Russian"
SPANISH_LANGUAGE = "Spanish; Castillian"
VIETNAMESE_LANGUAGE = "Vietnamese"

# Race codes (White is the model reference category)
RACE_CODES = {
    "aian": 1,
    "asian": 2,
    "black": 3,
    "hispanic": 4,
    "nhpi": 5,
    "white": 6,
    "other": 7,
    "vietnamese": 8,
}

RACE_LABELS = {
    "Alaskan Native": RACE_CODES["aian"],
    "American Indian": RACE_CODES["aian"],
    "Asian": RACE_CODES["asian"],
    "Black": RACE_CODES["black"],
    "Hawaiian": RACE_CODES["nhpi"],
    "Pacific Islander": RACE_CODES["nhpi"],
    "White": RACE_CODES["white"],
}

ETHNICITY_LABELS = {
    "NOT HISPANIC": 0,
    "HISPANIC": 1,
}

GENDER_LABELS = {
    "Male": 0,
    "Female": 1,
}

# Health planning areas grouped into regions; any other area is region 3
REGION_AREAS = {
    1: [
        "Bellevue",
        "Bothell/Woodinville",
        "Issaquah/Sammamish",
        "Kirkland",
        "Mercer Isl/Point Cities",
        "Redmond/Union Hill",
    ],
    2: [
        "Auburn",
        "Burien/Des Moines",
        "Federal Way",
        "Kent",
        "Lower Valley & Upper Sno",
        "Southeast King County",
        "Tukwila/SeaTac",
        "Vashon Island",
    ],
}
DEFAULT_REGION = 3

# ZIP codes with historically high asthma-related utilization
HIGH_UTILIZATION_ZIPS = [
    "98001", "98002", "98022", "98023", "98030", "98042", "98047",
    "98052", "98057", "98065", "98092", "98112", "98118", "98122",
    "98144", "98146", "98155", "98178", "98188",
]


def get_code_set(key: str) -> Optional[CodeSet]:
    """
    Get a diagnosis code set by its key name.

    Args:
        key: Key from DIAGNOSIS_CODE_SETS

    Returns:
        CodeSet if found, None otherwise
    """
    return DIAGNOSIS_CODE_SETS.get(key)


def list_code_sets() -> list[str]:
    """List all available diagnosis code set keys."""
    return list(DIAGNOSIS_CODE_SETS.keys())
