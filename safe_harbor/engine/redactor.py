# safe_harbor/engine/redactor.py

"""Redactor: rewrites text from resolved spans in one forward pass."""

import logging
import re
from typing import Iterable, Optional, Sequence, Tuple

from safe_harbor.core.definitions import IdentifierCategory
from safe_harbor.core.domain import (
    CustomPattern,
    DetectedItem,
    RedactionOptions,
    RedactionResult,
    ResolvedSpan,
)
from safe_harbor.logic.validators import MAX_UNAGGREGATED_AGE, ValidationLogic

logger = logging.getLogger(__name__)

AGE_TOKEN = "[AGE]"

_FOUR_DIGIT_YEAR = re.compile(r"(?<!\d)\d{4}(?!\d)")
_TWO_DIGIT_YEAR = re.compile(r"(?<!\d)\d{2}$")


def redact_spans(
    text: str,
    resolved: Sequence[ResolvedSpan],
    options: Optional[RedactionOptions] = None,
    failed_rules: Iterable[str] = (),
) -> RedactionResult:
    """Substitutes every resolved span and applies caller patterns.

    Spans never overlap, so every replacement is computed against the
    original offsets and the pieces are joined once, in a single pass over
    the text.

    Args:
        text: Original text the spans were computed on
        resolved: Non-overlapping spans from the resolver
        options: Redaction options; defaults apply when omitted
        failed_rules: Rules skipped during detection, echoed into the result

    Returns:
        RedactionResult counting one item per resolved span
    """
    options = options or RedactionOptions()
    ordered = sorted(resolved, key=lambda s: s.start)

    pieces = []
    cursor = 0
    for span in ordered:
        pieces.append(text[cursor : span.start])
        pieces.append(_replacement_for(span, text[span.start : span.end], options))
        cursor = span.end
    pieces.append(text[cursor:])

    redacted, custom_count = apply_custom_patterns("".join(pieces), options.custom_patterns)

    return RedactionResult(
        redacted_text=redacted,
        phi_detected=bool(ordered),
        items_redacted=len(ordered),
        categories=frozenset(s.category for s in ordered),
        detected_items=[DetectedItem(category=s.category, rule=s.rule.name) for s in ordered],
        failed_rules=list(failed_rules),
        custom_substitutions=custom_count,
    )


def apply_custom_patterns(text: str, patterns: Iterable[CustomPattern]) -> Tuple[str, int]:
    """Applies caller-owned substitutions directly to the string.

    A pattern whose substitution fails (e.g. a bad group reference in the
    replacement) is logged and skipped.

    Returns:
        The rewritten text and the number of substitutions made
    """
    total = 0
    for pattern in patterns:
        try:
            text, count = pattern.compiled.subn(pattern.replacement, text)
        except re.error:
            logger.warning(
                "Custom pattern substitution failed, skipping it",
                exc_info=True,
                extra={"pattern": pattern.compiled.pattern},
            )
            continue
        total += count
    return text, total


def _replacement_for(span: ResolvedSpan, original: str, options: RedactionOptions) -> str:
    if span.category is IdentifierCategory.AGE_OVER_89:
        age = ValidationLogic.first_number(original)
        if age is not None and age <= MAX_UNAGGREGATED_AGE:
            # Only reachable when the caller disabled preserve_age_under_90
            return AGE_TOKEN

    value = span.rule.replacement.apply(original)

    if options.preserve_years and span.category is IdentifierCategory.DATES:
        year = _year_of(original)
        if year:
            return f"{value} {year}"

    return value


def _year_of(date_text: str) -> Optional[str]:
    found = _FOUR_DIGIT_YEAR.search(date_text)
    if found:
        return found.group(0)
    found = _TWO_DIGIT_YEAR.search(date_text)
    return found.group(0) if found else None

