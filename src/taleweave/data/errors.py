"""Custom exceptions for story data loading and validation."""


class DataError(Exception):
    """Base exception for the data layer."""


class DataLoadError(DataError):
    """Raised when a story document is not valid JSON."""


class DataValidationError(DataError):
    """Raised when story content fails structural validation."""
