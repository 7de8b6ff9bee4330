# safe_harbor/service/pipeline.py

"""Main protection pipeline: detect, resolve and redact request payloads."""

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional, Set, Union

from safe_harbor.core.definitions import IdentifierCategory
from safe_harbor.core.domain import (
    ImageInspection,
    MatchSpan,
    ProtectionResult,
    RedactionOptions,
    RedactionResult,
)
from safe_harbor.core.exceptions import (
    InitializationError,
    PipelineError,
    RedactionError,
    ValidationError,
)
from safe_harbor.engine.detector import PhiDetector
from safe_harbor.engine.redactor import redact_spans
from safe_harbor.engine.resolver import resolve
from safe_harbor.service.audit import make_audit_entry
from safe_harbor.service.config import (
    ComplianceConfig,
    ComplianceConfigStore,
    Settings,
    settings,
)

logger = logging.getLogger(__name__)

WITHHELD_TOKEN = "[REDACTION_FAILED]"

ACTION_SKIPPED = "PHI_REDACTION_SKIPPED"
ACTION_FAILED = "PHI_REDACTION_FAILED"

OptionsLike = Union[RedactionOptions, Mapping[str, Any], None]


class RedactionService:
    """Singleton service wrapper for the detector.

    Manages detector lifecycle and provides thread-safe access to it.
    """

    _instance: Optional[PhiDetector] = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> PhiDetector:
        """Returns singleton detector instance.

        Returns:
            Initialized PhiDetector

        Raises:
            InitializationError: If detector initialization fails
        """
        if cls._instance is None:
            with cls._lock:
                # Double-checked locking pattern
                if cls._instance is None:
                    try:
                        logger.info("Initializing PHI detector")
                        cls._instance = PhiDetector()
                        logger.info("PHI detector initialized successfully")

                    except Exception as e:
                        logger.error("Failed to initialize PHI detector", exc_info=True)
                        if isinstance(e, InitializationError):
                            raise
                        raise InitializationError("PHI detector initialization failed") from e

        return cls._instance


def detect(text: Any) -> List[MatchSpan]:
    """Returns the raw PHI spans of text; non-string input yields []."""
    if not isinstance(text, str) or not text:
        return []
    return RedactionService.get_instance().detect(text)


def redact(text: Any, options: OptionsLike = None) -> RedactionResult:
    """Main entry point for text redaction.

    Args:
        text: Input text to redact
        options: RedactionOptions, or a mapping of its fields

    Returns:
        RedactionResult. Non-string input returns an empty result with no
        PHI detected.

    Raises:
        ValidationError: If options are invalid
        InitializationError: If the detector cannot be built
        PipelineError: If redaction fails unexpectedly
    """
    if not isinstance(text, str):
        logger.warning(f"Invalid input type received: {type(text).__name__}")
        return RedactionResult(redacted_text="")

    if not text:
        return RedactionResult(redacted_text=text)

    redaction_options = _coerce_options(options)
    detector = RedactionService.get_instance()

    try:
        report = detector.scan(
            text, preserve_age_under_90=redaction_options.preserve_age_under_90
        )
        resolved = resolve(report.spans)
        result = redact_spans(
            text, resolved, redaction_options, failed_rules=report.failed_rules
        )

    except Exception as e:
        logger.error(
            "Redaction processing failed",
            exc_info=True,
            extra={"text_length": len(text)},
        )
        raise PipelineError(f"Failed to redact text: {type(e).__name__}") from e

    logger.info(
        "Redaction completed",
        extra={
            "text_length": len(text),
            "raw_span_count": len(report.spans),
            "items_redacted": result.items_redacted,
            "categories": sorted(c.name for c in result.categories),
        },
    )
    return result


def inspect_image_metadata(image: Any) -> ImageInspection:
    """Flags metadata risk in a base64 image; nothing is stripped.

    This is a string containment check for DICOM and EXIF markers, a
    best-effort signal rather than a guarantee.
    """
    if not isinstance(image, str) or not image:
        return ImageInspection(
            safe=False,
            warnings=["Invalid image data"],
            recommendation="Provide the image as a base64 encoded string",
        )

    warnings = []

    if "DICM" in image or "dicom" in image.lower():
        warnings.append(
            "Image appears to be DICOM format which may contain embedded PHI in metadata"
        )

    if "Exif" in image:
        warnings.append("Image contains EXIF metadata which should be stripped")

    return ImageInspection(
        safe=not warnings,
        warnings=warnings,
        recommendation=(
            "Consider using DICOM/EXIF stripping tools before upload"
            if warnings
            else "No obvious metadata PHI detected"
        ),
    )


def protect(
    payload: Any,
    endpoint: Optional[str] = None,
    audit_context: Optional[Mapping[str, Any]] = None,
    options: OptionsLike = None,
    config: Optional[ComplianceConfig] = None,
    engine_settings: Optional[Settings] = None,
) -> ProtectionResult:
    """Protects a request payload before it leaves the process.

    Redacts the configured text fields of a shallow copy of the payload,
    flags metadata risk in the image field, and builds one audit entry for
    the whole call. Never raises: failures surface as warnings, and a field
    that cannot be redacted safely is withheld.

    Args:
        payload: Request object (mapping of field name to value)
        endpoint: Endpoint recorded in the audit entry
        audit_context: ip_address, user_agent, session_id, user_id
        options: Redaction options applied to every text field
        config: Compliance snapshot; defaults to the process-wide store
        engine_settings: Engine settings; defaults to the module settings

    Returns:
        ProtectionResult with the protected payload, warnings and audit entry
    """
    try:
        return _protect(
            payload,
            endpoint,
            audit_context,
            options,
            config or ComplianceConfigStore.get_instance().get(),
            engine_settings or settings,
        )
    except Exception:
        logger.error(
            "Unexpected failure while protecting payload",
            exc_info=True,
            extra={"endpoint": endpoint},
        )
        return ProtectionResult(
            protected={},
            warnings=["PHI protection failed; payload withheld"],
            audit_log=make_audit_entry(
                {**_as_mapping(audit_context), "action": ACTION_FAILED, "endpoint": endpoint}
            ),
        )


def _protect(
    payload: Any,
    endpoint: Optional[str],
    audit_context: Optional[Mapping[str, Any]],
    options: OptionsLike,
    config: ComplianceConfig,
    engine_settings: Settings,
) -> ProtectionResult:
    warnings: List[str] = []
    categories: Set[IdentifierCategory] = set()
    items_redacted = 0
    action = engine_settings.audit_action

    if not isinstance(payload, Mapping):
        logger.warning(f"Invalid payload type received: {type(payload).__name__}")
        warnings.append("Payload is not an object; nothing was forwarded")
        protected: Dict[str, Any] = {}

    else:
        protected = dict(payload)

        if not config.phi_redaction_enabled:
            warnings.append("PHI redaction is disabled; payload forwarded without redaction")
            action = ACTION_SKIPPED
        else:
            redaction_options = _coerce_options(options)
            for field in engine_settings.protected_fields:
                value = payload.get(field)
                if value is None or value == "":
                    continue

                if not isinstance(value, str):
                    warnings.append(f"Field {field} is not text and was left unredacted")
                    continue

                try:
                    result = redact(value, redaction_options)
                except RedactionError:
                    protected[field] = WITHHELD_TOKEN
                    warnings.append(f"Redaction failed for {field}; field withheld")
                    continue

                if result.failed_rules and _fails_closed(result, engine_settings):
                    protected[field] = WITHHELD_TOKEN
                    warnings.append(
                        f"Detection rules failed for {field} ({', '.join(result.failed_rules)}); field withheld"
                    )
                    continue

                if result.failed_rules:
                    warnings.append(
                        f"Detection rules failed for {field} ({', '.join(result.failed_rules)}); "
                        "redaction may be incomplete"
                    )

                protected[field] = result.redacted_text
                if result.phi_detected:
                    warnings.append(f"Redacted {result.items_redacted} PHI items from {field}")
                    items_redacted += result.items_redacted
                    categories |= result.categories

        image = payload.get(engine_settings.image_field)
        if image is not None:
            inspection = inspect_image_metadata(image)
            if not inspection.safe:
                warnings.extend(inspection.warnings)

    audit_log = make_audit_entry(
        {
            **_as_mapping(audit_context),
            "action": action,
            "endpoint": endpoint,
            "phi_detected": items_redacted > 0,
            "items_redacted": items_redacted,
            "categories": categories,
        }
    )

    logger.info(
        "Payload protected",
        extra={
            "endpoint": endpoint,
            "items_redacted": items_redacted,
            "warning_count": len(warnings),
        },
    )

    return ProtectionResult(protected=protected, warnings=warnings, audit_log=audit_log)


def _fails_closed(result: RedactionResult, engine_settings: Settings) -> bool:
    fail_closed = engine_settings.fail_closed
    if not fail_closed:
        return False
    registry = RedactionService.get_instance().registry
    return any(registry.get_rule(name).category in fail_closed for name in result.failed_rules)


def _coerce_options(options: OptionsLike) -> RedactionOptions:
    if options is None:
        return RedactionOptions()
    if isinstance(options, RedactionOptions):
        return options
    if isinstance(options, Mapping):
        try:
            return RedactionOptions(**options)
        except TypeError as e:
            raise ValidationError(f"Invalid redaction options: {e}") from e
    raise ValidationError(
        f"options must be RedactionOptions or a mapping, got {type(options).__name__}"
    )


def _as_mapping(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}
