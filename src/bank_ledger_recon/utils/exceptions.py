"""Custom exceptions for the reconciliation engine."""


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""

    pass


class DataAccessError(ReconciliationError):
    """The system of record could not be read or written.

    Fatal to the run: no partial report is returned.
    """

    pass


class InvalidWindowError(ReconciliationError):
    """Period end before period start, or unknown tenant/account."""

    pass


class ConfigurationError(ReconciliationError):
    """Error in configuration."""

    pass


class ReportGenerationError(ReconciliationError):
    """Error generating a report export."""

    pass


class AmbiguousMatchWarning(UserWarning):
    """
    Borderline similarity between a bank transaction and a candidate.

    Never raised by the engine. It is recorded as a ``match_reasons``
    annotation so reviewers can tell a thin signal from a confident one.
    """

    PREFIX = "Ambiguous match"

    @classmethod
    def annotation(cls, similarity: float) -> str:
        """Return the reason text recorded on a borderline candidate."""
        return f"{cls.PREFIX}: borderline confidence ({similarity:.0%})"
