"""Custom exceptions for the application."""

class ApplicationError(Exception):
    """Base application error."""
    pass

class ValidationError(ApplicationError, ValueError):
    """Data validation errors (out-of-grid coordinates, malformed records)."""
    pass

class ConfigError(ApplicationError):
    """Configuration-related errors."""
    pass

class EditorStateError(ApplicationError):
    """Operation not allowed in the current editor state."""
    pass

class ServiceError(ApplicationError):
    """Service operation errors."""
    pass

class DetectionError(ServiceError):
    """Automatic detection failed after exhausting the retry policy."""
    pass

class PersistenceError(ServiceError):
    """Storage backend read/write errors."""
    pass

class StorageCapacityError(PersistenceError):
    """Storage quota exceeded."""
    pass
