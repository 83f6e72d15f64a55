# =============================================================================
# core/exceptions.py - Reconciliation report errors
# =============================================================================


class ReportException(Exception):
    """Run-level reportlet failure; the cause is chained via __cause__"""


class InvalidConfigurationError(ReportException):
    """Wrong or unusable reportlet configuration"""


class SearchCondError(InvalidConfigurationError):
    """Matching condition that cannot be parsed"""


class StoreError(ReportException):
    """Identity store failure during count, search or lookup"""


class SinkError(ReportException):
    """XML content sink rejected an event"""


class ConnectorError(Exception):
    """Remote read failure, recovered per (object, resource)"""


class ReportCancelledError(ReportException):
    """Run cancelled before the whole population was inspected"""
