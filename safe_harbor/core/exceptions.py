# safe_harbor/core/exceptions.py

"""Custom exception hierarchy for the Safe Harbor redaction engine.

This module defines the specific error types used throughout the application
to differentiate between configuration, initialization, and runtime errors.
"""


class RedactionError(Exception):
    """Base exception for all application-specific errors."""

    pass


class ConfigurationError(RedactionError):
    """Raised when pattern rules or settings fail to load or validate."""

    pass


class InitializationError(RedactionError):
    """Raised when the detector or its recognizers fail to initialize."""

    pass


class PipelineError(RedactionError):
    """Raised when redaction of a text buffer fails unexpectedly."""

    pass


class ValidationError(RedactionError):
    """Raised when caller-supplied options are invalid (e.g., a bad regex)."""

    pass
