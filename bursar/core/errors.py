"""
Exception types raised by the payroll and statutory deduction modules.
"""


class BursarError(Exception):
    """Base class for all bursar errors."""


class InvalidArgument(BursarError, ValueError):
    """Raised when a caller passes a value outside the accepted domain."""


class InvalidRateTable(BursarError, ValueError):
    """Raised when a statutory rate table is malformed."""


class PayrollStateError(BursarError):
    """Raised on an illegal payroll period status transition."""


class UnbalancedJournalError(BursarError):
    pass
