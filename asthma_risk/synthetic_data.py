"""
Synthetic claims warehouse generator for testing the asthma risk pipeline.

Generates a Medicaid child population with:
- Eligibility spans in a baseline and a follow-up year, with attrition
- Asthma and non-asthma medical claims (office, ED, urgent care, inpatient)
- Pharmacy fills for controller, reliever and unrelated medications
- Medication and ZIP reference files matching the generated codes
"""

import csv
import logging
import os
import random
from datetime import date, timedelta
from typing import Optional
import numpy as np

from .claims_schema import Claim, Eligibility
from .code_sets import CLAIM_TYPES, ED_REVENUE_CODES, URGENT_CARE_PLACE_OF_SERVICE
from .database import Database

logger = logging.getLogger(__name__)

OFFICE_VISIT_CLAIM_TYPE = 4
OUTPATIENT_CLAIM_TYPE = 3

ASTHMA_DX_CODES = ["49300", "49390", "49392", "J4520", "J4530", "J45909", "J45901"]
OTHER_DX_CODES = ["4659", "J069", "R05", "S0990XA", "K5900", "H6690", "Z00129"]

# (ndc, description, category) for the synthetic medication reference
SYNTHETIC_MEDICATIONS = [
    ("00173071920", "FLOVENT HFA 44 MCG INHALER", "inhaled corticosteroids"),
    ("00173060002", "QVAR 40 MCG INHALER", "inhaled corticosteroids"),
    ("00006011731", "SINGULAIR 5 MG CHEWABLE", "leukotriene modifiers"),
    ("00173069600", "ADVAIR DISKUS 100-50", "inhaled steroid combinations"),
    ("00186037020", "SYMBICORT 80-4.5 MCG INHALER", "antiasthmatic combinations"),
    ("00173068220", "VENTOLIN HFA 90 MCG INHALER", "short-acting inhaled beta-2 agonists"),
    ("00487950101", "ALBUTEROL 2.5 MG/3 ML SOLN", "short-acting inhaled beta-2 agonists"),
    ("00093431473", "PREDNISOLONE 15 MG/5 ML SOLN", "oral corticosteroids"),
]
CONTROLLER_NDCS = [m[0] for m in SYNTHETIC_MEDICATIONS if m[2] != "short-acting inhaled beta-2 agonists"
                   and m[2] != "oral corticosteroids"]
RELIEVER_NDCS = [m[0] for m in SYNTHETIC_MEDICATIONS if m[2] == "short-acting inhaled beta-2 agonists"]
UNLISTED_NDCS = ["00093415573", "00781204001"]  # antibiotics, not on the asthma list

SYNTHETIC_ZIPS = {
    "98004": "Bellevue",
    "98033": "Kirkland",
    "98002": "Auburn",
    "98032": "Kent",
    "98188": "Tukwila/SeaTac",
    "98118": "Beacon/Gtown/S.Park",
    "98122": "Capitol Hill/E.lake",
    "98133": "North Seattle",
}

RACE_LABEL_WEIGHTS = {
    "White": 0.35,
    "Black": 0.15,
    "Asian": 0.10,
    "American Indian": 0.02,
    "Alaskan Native": 0.01,
    "Pacific Islander": 0.03,
    "Hawaiian": 0.01,
    "Other": 0.13,
    None: 0.20,
}

LANGUAGE_WEIGHTS = {
    "English": 0.70,
    "Spanish; Castillian": 0.14,
    "Vietnamese": 0.04,
    "Somali": 0.04,
    "Russian": 0.03,
    "Chinese": 0.03,
    "Korean": 0.02,
}

RAC_CODES = [1201, 1203, 1204, 1205]


def _weighted_choice(weights: dict):
    keys = list(weights.keys())
    return random.choices(keys, weights=list(weights.values()), k=1)[0]


def _random_date(year: int) -> date:
    return date(year, 1, 1) + timedelta(days=random.randint(0, 364))


class SyntheticDataGenerator:
    """
    Generate a synthetic claims warehouse for testing.

    Creates a child population where:
    - Ages span slightly beyond the 3-17 window so the age filter is exercised
    - Some children have several baseline coverage spans, some lose coverage
    - Asthmatic children have asthma claims, fills, and follow-up events
      whose probability rises with prior ED use and low AMR
    """

    def __init__(
        self,
        n_children: int = 2000,
        baseline_year: int = 2014,
        followup_year: int = 2015,
        asthma_prevalence: float = 0.2,
        retention_rate: float = 0.85,
        seed: Optional[int] = 42
    ):
        """
        Initialize the generator.

        Args:
            n_children: Number of children to generate
            baseline_year: Baseline calendar year
            followup_year: Follow-up calendar year
            asthma_prevalence: Share of children with asthma
            retention_rate: Share of children eligible again in the follow-up year
            seed: Random seed for reproducibility
        """
        self.n_children = n_children
        self.baseline_year = baseline_year
        self.followup_year = followup_year
        self.asthma_prevalence = asthma_prevalence
        self.retention_rate = retention_rate

        if seed is not None:
            random.seed(seed)
            np.random.seed(seed)

        self.eligibility: list[Eligibility] = []
        self.claims: list[Claim] = []
        self.asthmatic_ids: set[str] = set()

        self._eligibility_id = 1
        self._claim_id = 1

    def generate(self) -> None:
        """Generate all synthetic data."""
        for i in range(self.n_children):
            child_id = f"WA{i + 1:08d}"
            self._generate_child(child_id)

    def _generate_child(self, child_id: str) -> None:
        age = random.randint(1, 19)
        birth_date = date(self.baseline_year - age, random.randint(1, 12), random.randint(1, 28))
        demographics = {
            "medicaid_recipient_id": child_id,
            "birth_date": birth_date,
            "gender": random.choice(["Male", "Female"]),
            "race1": _weighted_choice(RACE_LABEL_WEIGHTS),
            "hispanic_origin_name": random.choices(
                ["HISPANIC", "NOT HISPANIC", None], weights=[0.2, 0.75, 0.05]
            )[0],
            "spoken_lng_name": _weighted_choice(LANGUAGE_WEIGHTS),
            "fpl_prcntg": None if random.random() < 0.15 else float(random.randint(1, 300)),
            "rac_code": random.choice(RAC_CODES),
            "postal_code": random.choice(list(SYNTHETIC_ZIPS)),
        }

        self._generate_spans(demographics, self.baseline_year, n_spans=random.choice([1, 1, 1, 2, 3]))
        retained = random.random() < self.retention_rate
        if retained:
            self._generate_spans(demographics, self.followup_year, n_spans=1)

        self._generate_background_claims(child_id)
        if random.random() < self.asthma_prevalence:
            self.asthmatic_ids.add(child_id)
            self._generate_asthma_history(child_id)

    def _generate_spans(self, demographics: dict, year: int, n_spans: int) -> None:
        """Consecutive coverage spans covering part of the year."""
        boundaries = sorted(random.sample(range(1, 364), n_spans * 2))
        for j in range(n_spans):
            start = date(year, 1, 1) + timedelta(days=boundaries[2 * j])
            end = date(year, 1, 1) + timedelta(days=boundaries[2 * j + 1])
            self.eligibility.append(Eligibility(
                eligibility_id=self._eligibility_id,
                cal_year=year,
                from_date=start,
                to_date=end,
                coverage_type_ind="M",
                rac_name=f"RAC {demographics['rac_code']}",
                **demographics,
            ))
            self._eligibility_id += 1

    def _add_claim(self, child_id: str, year: int, claim_type: int, dx: list, **fields) -> None:
        codes = dx + [None] * (5 - len(dx))
        service_date = fields.pop("from_srvc_date", None) or _random_date(year)
        self.claims.append(Claim(
            claim_line_id=self._claim_id,
            medicaid_recipient_id=child_id,
            cal_year=year,
            clm_type_cid=claim_type,
            primary_diagnosis_code=codes[0],
            diagnosis_code_2=codes[1],
            diagnosis_code_3=codes[2],
            diagnosis_code_4=codes[3],
            diagnosis_code_5=codes[4],
            from_srvc_date=service_date,
            **fields,
        ))
        self._claim_id += 1

    def _add_event(self, child_id: str, year: int, kind: str, dx: list) -> None:
        if kind == "hosp":
            self._add_claim(child_id, year, CLAIM_TYPES["inpatient"], dx)
        elif kind == "ED":
            self._add_claim(child_id, year, OUTPATIENT_CLAIM_TYPE, dx,
                            revenue_code=random.choice(ED_REVENUE_CODES))
        elif kind == "urgent":
            self._add_claim(child_id, year, OFFICE_VISIT_CLAIM_TYPE, dx,
                            place_of_service=URGENT_CARE_PLACE_OF_SERVICE)
        elif kind == "well":
            self._add_claim(child_id, year, CLAIM_TYPES["preventive"], dx)
        else:
            self._add_claim(child_id, year, OFFICE_VISIT_CLAIM_TYPE, dx,
                            place_of_service="11 OFFICE")

    def _add_fill(self, child_id: str, year: int, ndc: str) -> None:
        description = {m[0]: m[1] for m in SYNTHETIC_MEDICATIONS}.get(ndc, "ANTIBIOTIC")
        fill_date = _random_date(year)
        self._add_claim(child_id, year, CLAIM_TYPES["pharmacy"], [],
                        ndc=ndc, ndc_desc=description,
                        prscrptn_filled_date=fill_date, from_srvc_date=fill_date,
                        drug_dosage="1")

    def _generate_background_claims(self, child_id: str) -> None:
        """Non-asthma care any child may have."""
        for year in (self.baseline_year, self.followup_year):
            for _ in range(np.random.poisson(1.5)):
                self._add_event(child_id, year, "office", [random.choice(OTHER_DX_CODES)])
            if random.random() < 0.12:
                self._add_event(child_id, year, "ED", [random.choice(OTHER_DX_CODES)])
            if random.random() < 0.02:
                self._add_event(child_id, year, "hosp", [random.choice(OTHER_DX_CODES)])
            if random.random() < 0.3:
                self._add_fill(child_id, year, random.choice(UNLISTED_NDCS))

    def _asthma_dx(self) -> list:
        """Asthma as the primary diagnosis most of the time, otherwise secondary."""
        asthma = random.choice(ASTHMA_DX_CODES)
        if random.random() < 0.7:
            return [asthma]
        return [random.choice(OTHER_DX_CODES), asthma]

    def _generate_asthma_history(self, child_id: str) -> None:
        base, follow = self.baseline_year, self.followup_year

        self._add_event(child_id, base, "office", self._asthma_dx())
        for _ in range(np.random.poisson(1.0)):
            self._add_event(child_id, base, "office", self._asthma_dx())
        if random.random() < 0.3:
            self._add_event(child_id, base, "well", self._asthma_dx())

        baseline_ed = random.random() < 0.15
        if baseline_ed:
            self._add_event(child_id, base, "ED", self._asthma_dx())
        if random.random() < 0.04:
            self._add_event(child_id, base, "hosp", self._asthma_dx())
        if random.random() < 0.05:
            self._add_event(child_id, base, "urgent", self._asthma_dx())

        controllers = np.random.poisson(2.0)
        relievers = np.random.poisson(2.5)
        for _ in range(controllers):
            self._add_fill(child_id, base, random.choice(CONTROLLER_NDCS))
        for _ in range(relievers):
            self._add_fill(child_id, base, random.choice(RELIEVER_NDCS))
        for _ in range(np.random.poisson(1.0)):
            self._add_fill(child_id, follow, random.choice(CONTROLLER_NDCS + RELIEVER_NDCS))

        # follow-up risk rises with prior ED use, reliever reliance and low AMR
        logit = -2.2 + 1.2 * baseline_ed + 0.25 * relievers - 0.2 * controllers
        if random.random() < 1 / (1 + np.exp(-logit)):
            self._add_event(child_id, follow, random.choice(["ED", "ED", "hosp", "urgent"]),
                            self._asthma_dx())
        for _ in range(np.random.poisson(0.8)):
            self._add_event(child_id, follow, "office", self._asthma_dx())

    def save_to_database(self, db: Database) -> dict[str, int]:
        """
        Save generated data to database.

        Args:
            db: Database instance to save to

        Returns:
            Dictionary with counts of inserted records
        """
        db.create_tables()

        with db.session() as session:
            session.add_all(self.eligibility)
            session.add_all(self.claims)

        return {
            "eligibility": len(self.eligibility),
            "claims": len(self.claims),
        }

    def get_summary(self) -> dict:
        """Get summary statistics of generated data."""
        followup_ids = {e.medicaid_recipient_id for e in self.eligibility
                        if e.cal_year == self.followup_year}
        pharmacy = sum(1 for c in self.claims if c.clm_type_cid == CLAIM_TYPES["pharmacy"])
        return {
            "n_children": self.n_children,
            "n_spans": len(self.eligibility),
            "n_claims": len(self.claims),
            "n_pharmacy_fills": pharmacy,
            "n_asthmatic": len(self.asthmatic_ids),
            "retained_pct": len(followup_ids) / self.n_children * 100 if self.n_children else 0,
        }


def write_medication_reference(path: str) -> None:
    """Write the synthetic asthma medication list as CSV (ndc, ndcdesc, category)."""
    with open(path, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(["ndc", "ndcdesc", "category"])
        writer.writerows(SYNTHETIC_MEDICATIONS)


def write_zip_reference(path: str) -> None:
    """Write the synthetic ZIP reference as CSV (zipcode, hpa)."""
    with open(path, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(["zipcode", "hpa"])
        writer.writerows(SYNTHETIC_ZIPS.items())


def generate_synthetic_claims_data(
    db_path: str = "./synthetic_claims.db",
    n_children: int = 2000,
    seed: int = 42,
    reference_dir: Optional[str] = None
) -> tuple[Database, dict[str, str]]:
    """
    Convenience function to generate a synthetic claims warehouse.

    Args:
        db_path: Path to SQLite database file
        n_children: Number of children to generate
        seed: Random seed
        reference_dir: Where to write the reference files (default: next to db_path)

    Returns:
        Database with synthetic data loaded, and the reference file paths
        keyed medication_reference / zip_reference
    """
    from .database import get_sqlite_database

    reference_dir = reference_dir or os.path.dirname(os.path.abspath(db_path))
    os.makedirs(reference_dir, exist_ok=True)
    references = {
        "medication_reference": os.path.join(reference_dir, "asthma_medications.csv"),
        "zip_reference": os.path.join(reference_dir, "zip_areas.csv"),
    }
    write_medication_reference(references["medication_reference"])
    write_zip_reference(references["zip_reference"])

    db = get_sqlite_database(db_path)

    generator = SyntheticDataGenerator(n_children=n_children, seed=seed)
    generator.generate()

    # summary before saving, while instances are still attached to the generator
    summary = generator.get_summary()
    counts = generator.save_to_database(db)

    logger.info(
        "Generated synthetic claims: %d children (%d asthmatic, %.1f%% retained), "
        "%d eligibility spans, %d claim lines (%d pharmacy)",
        summary["n_children"], summary["n_asthmatic"], summary["retained_pct"],
        counts["eligibility"], counts["claims"], summary["n_pharmacy_fills"],
    )
    return db, references
