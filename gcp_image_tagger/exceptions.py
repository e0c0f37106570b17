"""Custom exceptions for the GCP image tagger."""


class GCPTaggerError(Exception):
    """Base exception for GCP image tagging operations."""
    pass


class ConfigurationError(GCPTaggerError):
    """Raised when there are configuration-related errors."""
    pass


class GPSDataError(GCPTaggerError):
    """Raised when there are GPS data processing errors."""
    pass


class FileOperationError(GCPTaggerError):
    """Raised when file operations fail."""
    pass


class ProjectionError(GCPTaggerError):
    """Raised when a coordinate reference system cannot be used."""
    pass


class DetectionError(GCPTaggerError):
    """Raised when an auto-detector cannot be loaded or used."""
    pass
