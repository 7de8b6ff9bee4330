# safe_harbor/service/compliance.py

"""HIPAA operational-safeguard checks over a ComplianceConfig snapshot."""

import logging

from safe_harbor.core.domain import ComplianceCheckResult
from safe_harbor.service.config import ComplianceConfig

logger = logging.getLogger(__name__)

RECOMMEND_CRITICAL = "Critical HIPAA compliance issues must be addressed before processing PHI"
RECOMMEND_WARNINGS = "Address warnings to improve HIPAA compliance posture"
RECOMMEND_PASSED = "Basic HIPAA compliance checks passed"


def validate_compliance(config: ComplianceConfig) -> ComplianceCheckResult:
    """Evaluates the operational safeguards of a configuration.

    Missing BAA acknowledgement and unenforced HTTPS are blocking issues;
    the remaining safeguards only produce warnings. The result is derived
    fresh on every call, never cached, since the config can change at
    runtime.

    Args:
        config: Snapshot to evaluate

    Returns:
        ComplianceCheckResult with issues, warnings and a recommendation
    """
    issues = []
    warnings = []

    if not config.baa_acknowledged:
        issues.append("Business Associate Agreement (BAA) with the AI service provider not acknowledged")

    if not config.https_enforced:
        issues.append("HTTPS not enforced - transmission security at risk")

    if not config.audit_logging_enabled:
        warnings.append("Audit logging not enabled - HIPAA requires audit controls")

    if not config.access_controls_enabled:
        warnings.append("Access controls not implemented - HIPAA requires access controls")

    if not config.encryption_at_rest:
        warnings.append("Data encryption at rest not configured")

    if not config.data_retention_policy:
        warnings.append("Data retention policy not defined")

    if issues:
        recommendation = RECOMMEND_CRITICAL
    elif warnings:
        recommendation = RECOMMEND_WARNINGS
    else:
        recommendation = RECOMMEND_PASSED

    logger.info(
        "Compliance check evaluated",
        extra={"compliant": not issues, "issue_count": len(issues), "warning_count": len(warnings)},
    )

    return ComplianceCheckResult(
        compliant=not issues,
        issues=issues,
        warnings=warnings,
        recommendation=recommendation,
    )
