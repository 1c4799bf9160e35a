"""
Exception types raised by the asthma risk pipeline.

Every error is terminal for a run; nothing here is retried.
"""


class AsthmaRiskError(Exception):
    """Base class for pipeline errors."""


class ExtractionError(AsthmaRiskError, RuntimeError):
    """A record-store query failed or returned no rows where rows are required."""


class DataIntegrityError(AsthmaRiskError, ValueError):
    """A key expected to be unique is not, or a derived count is impossible."""


class RecodeDomainError(AsthmaRiskError, ValueError):
    """
    A raw categorical value falls outside its expected domain.

    Attributes:
        field: Name of the field being recoded
        values: The unexpected values that were found
    """

    def __init__(self, field: str, values: list):
        self.field = field
        self.values = values
        super().__init__(f"Unexpected {field} value(s): {values}")
