# photo_organizer/exceptions.py
"""
Defines custom, application-specific exceptions for clear error handling.

The organizer client and the folder export each surface exactly one error type
to their callers (OrganizeError, ExportError). The more specific classifier
exceptions are raised internally and chained onto those, so the UI shows a
single message while the logs keep the full cause.
"""

class AppServiceError(Exception):
    """Base exception for all service-related errors in the application."""
    pass

# --- Organizer Exceptions ---
class OrganizeError(AppServiceError):
    """Raised when photos could not be organized, whatever the underlying cause."""
    pass

class ClassifierError(AppServiceError):
    """Base exception for issues talking to the classification model."""
    pass

class ClassifierConnectionError(ClassifierError):
    """Raised for network, HTTP or credential failures when contacting the model."""
    pass

class MalformedResponseError(ClassifierError):
    """Raised when the model returns an empty, non-JSON or wrongly shaped payload."""
    pass

# --- Export Exceptions ---
class ExportError(AppServiceError):
    """Raised when a folder could not be bundled into an archive."""
    pass

# --- Local State Exceptions ---
class PreviewError(AppServiceError):
    """Raised for unknown or already revoked preview references."""
    pass

class InvalidTransitionError(AppServiceError):
    """Raised when the UI session is asked for a transition its current status forbids."""
    pass
