"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class BackendAPIError(DomainException):
    """Backend API returned an error or is unavailable"""

    pass


class InvalidTransactionDataError(DomainException):
    """Transaction payload is malformed beyond recovery"""

    pass


class ReconciliationIssue(DomainException):
    """
    A recoverable problem found during an aggregation pass.

    Issues never abort a pass: they are either raised while validating a single
    record and caught by the aggregation loop, or recorded directly as
    diagnostic entries.
    """

    def __init__(self, message: str, record_id: str | None = None):
        super().__init__(message)
        self.record_id = record_id


class InvalidDate(ReconciliationIssue):
    """A date field could not be parsed"""

    pass


class InvalidAmount(ReconciliationIssue):
    """An amount is non-finite or negative"""

    pass


class AmbiguousAttribution(ReconciliationIssue):
    """Record matched several rows under amount tolerance only"""

    def __init__(self, message: str, record_id: str | None = None, row_ids: tuple = ()):
        super().__init__(message, record_id)
        self.row_ids = row_ids


class OverCollection(ReconciliationIssue):
    """Attributed payments exceed a row's total amount"""

    def __init__(self, message: str, row_id: str, excess: float):
        super().__init__(message)
        self.row_id = row_id
        self.excess = excess
