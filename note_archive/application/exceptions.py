"""
Core business exceptions for the note archive application.

This module defines a hierarchy of custom exceptions to allow for granular
error handling and clear separation of failure domains.
"""


class NoteArchiveError(Exception):
    """Base exception for all component-specific errors."""
    pass


# --- Configuration Errors ---

class InvalidConfigurationError(NoteArchiveError):
    """
    Raised when user-supplied parameters are out of domain or contradict
    each other (e.g., a length below the required minimum, a count of 0,
    or a hash too short for the partition geometry).
    """
    pass


# --- Infrastructure Errors ---

class InfrastructureError(NoteArchiveError):
    """Base class for errors related to external systems (filesystem, etc.)."""
    pass


class ArchiveIOError(InfrastructureError):
    """Raised when a directory cannot be created or a batch cannot be flushed."""
    pass


# --- Domain/Business Logic Errors ---

class DomainError(NoteArchiveError):
    """Base class for errors related to business logic failures."""
    pass


class EncodingError(DomainError):
    """Raised when a note sequence cannot be encoded into an artifact."""
    pass


class InvalidStateError(DomainError):
    """Raised when a closed archive writer is asked to push or finish."""
    pass
