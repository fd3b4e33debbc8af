"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidAmountError(DomainException):
    """Amount is NaN, infinite or not a number"""

    pass


class InvalidTransactionDataError(DomainException):
    """Transaction data is malformed or invalid"""

    pass


class LocationUnavailableError(DomainException):
    """Location source could not be started (permission denied or unsupported)"""

    pass


class PreferenceStoreError(DomainException):
    """Key-value store read or write failed"""

    pass


class GeofenceNotFoundError(DomainException):
    """No geofence is registered under the given id"""

    pass


class SpendingCapExceededError(DomainException):
    """Purchase rejected because the merchant or category cap is spent"""

    def __init__(self, message: str, status):
        super().__init__(message)
        self.status = status
