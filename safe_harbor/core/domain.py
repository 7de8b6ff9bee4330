# safe_harbor/core/domain.py

"""Domain models for detection, redaction, compliance and audit results."""

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Pattern, Tuple, Union

from safe_harbor.core.definitions import IdentifierCategory, priority_of
from safe_harbor.core.exceptions import ValidationError


@dataclass(frozen=True)
class ConstantReplacement:
    """Substitutes the whole match with a fixed token such as ``[SSN]``."""

    token: str

    def apply(self, matched: str) -> str:
        return self.token


@dataclass(frozen=True)
class PrefixPreservingReplacement:
    """Keeps the leading field label of the match and replaces the value.

    Attributes:
        token: Replacement token for the identifier value (e.g. ``[MRN]``)
        label: Pattern matching the label at the start of the matched text
        separator: Text placed between the kept label and the token
    """

    token: str
    label: Pattern
    separator: str = ": "

    def apply(self, matched: str) -> str:
        found = self.label.match(matched)
        if not found:
            return self.token
        return f"{found.group(0)}{self.separator}{self.token}"


Replacement = Union[ConstantReplacement, PrefixPreservingReplacement]


@dataclass(frozen=True)
class PatternRule:
    """A single detection rule owned by the pattern registry.

    Attributes:
        name: Unique rule name (e.g. ``ssn_separated``)
        category: Identifier category the rule reports
        regex: Regular expression source for the matcher
        replacement: Replacement strategy applied to matched text
        order: Registration index, used as the deterministic tie-break
        score: Recognizer score handed to presidio
        ignore_case: Whether the matcher is case-insensitive
        validator: Optional validator name applied to each raw match
        priority: Overlap rank overriding the category's rank (lower wins)
    """

    name: str
    category: IdentifierCategory
    regex: str
    replacement: Replacement
    order: int
    score: float = 0.85
    ignore_case: bool = True
    validator: Optional[str] = None
    priority: Optional[int] = None

    @property
    def rank(self) -> int:
        return self.priority if self.priority is not None else priority_of(self.category)


@dataclass(frozen=True)
class MatchSpan:
    """A raw match of one rule over a text buffer; ``end`` is exclusive."""

    category: IdentifierCategory
    start: int
    end: int
    text: str
    rule: PatternRule


@dataclass(frozen=True)
class DetectionReport:
    """Detector output: ordered spans plus the rules that failed to run."""

    spans: List[MatchSpan] = field(default_factory=list)
    failed_rules: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ResolvedSpan:
    """One or more overlapping/adjacent matches collapsed to a single span.

    Attributes:
        start: Start offset of the union of the group
        end: Exclusive end offset of the union of the group
        category: Highest-priority category in the group
        rule: Rule whose replacement drives the substitution
        members: The raw matches merged into this span
    """

    start: int
    end: int
    category: IdentifierCategory
    rule: PatternRule
    members: Tuple[MatchSpan, ...] = ()


@dataclass(frozen=True)
class DetectedItem:
    """Category rollup entry for a consumed span."""

    category: IdentifierCategory
    rule: str


@dataclass(frozen=True)
class RedactionResult:
    """Result of redacting a single text buffer.

    Attributes:
        redacted_text: Sanitized text
        phi_detected: Whether any span was substituted
        items_redacted: Number of resolved spans consumed
        categories: Categories actually used for substitution
        detected_items: One entry per consumed span
        failed_rules: Rules that raised while scanning and were skipped
        custom_substitutions: Substitutions made by caller-supplied patterns
    """

    redacted_text: str
    phi_detected: bool = False
    items_redacted: int = 0
    categories: FrozenSet[IdentifierCategory] = frozenset()
    detected_items: List[DetectedItem] = field(default_factory=list)
    failed_rules: List[str] = field(default_factory=list)
    custom_substitutions: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "redacted_text": self.redacted_text,
            "phi_detected": self.phi_detected,
            "items_redacted": self.items_redacted,
            "categories": sorted(c.value for c in self.categories),
            "detected_items": [
                {"category": item.category.value, "rule": item.rule}
                for item in self.detected_items
            ],
            "failed_rules": list(self.failed_rules),
            "custom_substitutions": self.custom_substitutions,
        }


@dataclass(frozen=True)
class CustomPattern:
    """Caller-supplied substitution applied after the built-in rules."""

    pattern: Union[str, Pattern]
    replacement: str
    compiled: Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.replacement, str):
            raise ValidationError("Custom pattern replacement must be a string")
        if isinstance(self.pattern, str):
            try:
                compiled = re.compile(self.pattern)
            except re.error as e:
                raise ValidationError(f"Invalid custom pattern: {e}") from e
        elif isinstance(self.pattern, re.Pattern):
            compiled = self.pattern
        else:
            raise ValidationError(
                f"Custom pattern must be a string or compiled regex, got {type(self.pattern).__name__}"
            )
        object.__setattr__(self, "compiled", compiled)


@dataclass(frozen=True)
class RedactionOptions:
    """Per-call redaction options.

    Attributes:
        preserve_years: Keep the year of a date (``[DATE] 2024``)
        preserve_age_under_90: Leave ages of 89 and below untouched
        custom_patterns: Extra substitutions applied as a final pass
    """

    preserve_years: bool = False
    preserve_age_under_90: bool = True
    custom_patterns: Tuple[CustomPattern, ...] = ()

    def __post_init__(self) -> None:
        patterns = tuple(self.custom_patterns or ())
        for pattern in patterns:
            if not isinstance(pattern, CustomPattern):
                raise ValidationError(
                    f"custom_patterns entries must be CustomPattern, got {type(pattern).__name__}"
                )
        object.__setattr__(self, "custom_patterns", patterns)


@dataclass(frozen=True)
class ComplianceCheckResult:
    """Outcome of a configuration compliance check."""

    compliant: bool
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    recommendation: str = ""


@dataclass(frozen=True)
class AuditLogEntry:
    """Structured audit record for a protected call or consent event."""

    timestamp: str
    action: str
    endpoint: Optional[str] = None
    phi_detected: Optional[bool] = None
    items_redacted: Optional[int] = None
    categories: List[str] = field(default_factory=list)
    user_id: str = "anonymous"
    session_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ImageInspection:
    """Best-effort metadata risk signal for a base64 image."""

    safe: bool
    warnings: List[str] = field(default_factory=list)
    recommendation: str = ""


@dataclass(frozen=True)
class ProtectionResult:
    """Result of protecting a request payload."""

    protected: Dict[str, Any]
    warnings: List[str]
    audit_log: AuditLogEntry
