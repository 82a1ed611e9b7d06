"""Error taxonomy for the scan pipeline."""


class ScanError(Exception):
    """Base class for errors raised by the scan pipeline."""


class AuditError(ScanError):
    """The audit step produced nothing usable; the scan is aborted."""


class AuditExecutionFailed(AuditError):
    """npm audit could not run or produced no output at all."""


class AuditOutputMalformed(AuditError):
    """npm audit produced output that is not a JSON object."""


class HistoryReadCorrupt(ScanError):
    """Stored scan history for a project could not be parsed."""
