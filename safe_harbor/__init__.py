# safe_harbor/__init__.py

"""HIPAA Safe Harbor PHI detection and redaction engine."""

from safe_harbor.core.definitions import IdentifierCategory
from safe_harbor.core.domain import (
    AuditLogEntry,
    ComplianceCheckResult,
    CustomPattern,
    ImageInspection,
    MatchSpan,
    ProtectionResult,
    RedactionOptions,
    RedactionResult,
)
from safe_harbor.core.exceptions import (
    ConfigurationError,
    InitializationError,
    PipelineError,
    RedactionError,
    ValidationError,
)
from safe_harbor.service.audit import make_audit_entry, record_consent
from safe_harbor.service.compliance import validate_compliance
from safe_harbor.service.config import ComplianceConfig, ComplianceConfigStore
from safe_harbor.service.pipeline import detect, inspect_image_metadata, protect, redact

__version__ = "0.1.0"

__all__ = [
    "AuditLogEntry",
    "ComplianceCheckResult",
    "ComplianceConfig",
    "ComplianceConfigStore",
    "ConfigurationError",
    "CustomPattern",
    "IdentifierCategory",
    "ImageInspection",
    "InitializationError",
    "MatchSpan",
    "PipelineError",
    "ProtectionResult",
    "RedactionError",
    "RedactionOptions",
    "RedactionResult",
    "ValidationError",
    "detect",
    "inspect_image_metadata",
    "make_audit_entry",
    "protect",
    "record_consent",
    "redact",
    "validate_compliance",
]
