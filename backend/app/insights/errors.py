from __future__ import annotations


class InsightError(Exception):
    """Base class for insight engine failures."""


class DataAccessError(InsightError):
    """A history query failed. Never surfaces past the repository seam."""

    def __init__(self, message: str, *, query: str = "unknown"):
        super().__init__(message)
        self.query = query


class ComputationError(InsightError):
    pass


class ConfigurationError(InsightError):
    """Invalid threshold or window. Raised at engine construction only."""

    def __init__(self, problems):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems) or "invalid insight configuration")
