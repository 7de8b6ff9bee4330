# safe_harbor/engine/detector.py

"""Detector: runs every registry rule over a text buffer and collects spans."""

import logging
from typing import List, Optional

from safe_harbor.core.definitions import IdentifierCategory
from safe_harbor.core.domain import DetectionReport, MatchSpan, PatternRule
from safe_harbor.core.exceptions import InitializationError
from safe_harbor.core.registry import PatternRegistry
from safe_harbor.engine.recognizers import SafeHarborRecognizer, create_all_recognizers
from safe_harbor.logic.validators import get_validator

logger = logging.getLogger(__name__)


class PhiDetector:
    """Presidio-backed detector over the Safe Harbor rule table.

    Holds one recognizer per rule. Scans touch no shared mutable state, so a
    single instance can serve concurrent requests.
    """

    def __init__(self, registry: Optional[PatternRegistry] = None) -> None:
        """Initialize detector.

        Args:
            registry: Rule registry to use; defaults to the bundled rules

        Raises:
            InitializationError: If the recognizers cannot be built.
        """
        self.registry = registry or PatternRegistry.get_instance()
        self._recognizers: List[SafeHarborRecognizer] = self._initialize()

    def _initialize(self) -> List[SafeHarborRecognizer]:
        try:
            recognizers = create_all_recognizers(self.registry.rules)
        except Exception as e:
            logger.error("Detector initialization failed", exc_info=True)
            raise InitializationError("Failed to initialize pattern recognizers") from e

        logger.info(
            "Detector initialized successfully",
            extra={"recognizer_count": len(recognizers)},
        )
        return recognizers

    @property
    def recognizers(self) -> List[SafeHarborRecognizer]:
        return list(self._recognizers)

    def detect(self, text: str, preserve_age_under_90: bool = True) -> List[MatchSpan]:
        """Returns the raw spans of text, ordered by start offset."""
        return self.scan(text, preserve_age_under_90=preserve_age_under_90).spans

    def scan(self, text: str, preserve_age_under_90: bool = True) -> DetectionReport:
        """Runs every rule over text.

        A rule that raises is logged and skipped so the remaining rules
        still run; its name is reported in ``failed_rules``.

        Args:
            text: Buffer to scan; anything other than a non-empty str yields
                an empty report
            preserve_age_under_90: When False, age matches of 89 and below
                are committed too

        Returns:
            DetectionReport whose spans are sorted by start offset, ties
            broken by rule registration order
        """
        if not isinstance(text, str) or not text:
            return DetectionReport()

        spans: List[MatchSpan] = []
        failed_rules: List[str] = []

        for recognizer in self._recognizers:
            rule = recognizer.rule
            try:
                results = recognizer.analyze(text=text, entities=[rule.category.name])
                matches = [
                    MatchSpan(
                        category=rule.category,
                        start=r.start,
                        end=r.end,
                        text=text[r.start : r.end],
                        rule=rule,
                    )
                    for r in results
                    if self._accept(rule, text[r.start : r.end], preserve_age_under_90)
                ]
            except Exception:
                logger.warning(
                    "Pattern rule failed, treating it as no matches",
                    exc_info=True,
                    extra={"rule": rule.name, "text_length": len(text)},
                )
                failed_rules.append(rule.name)
                continue

            spans.extend(matches)

        spans.sort(key=lambda s: (s.start, s.rule.order))

        logger.debug(
            "Scan completed",
            extra={
                "span_count": len(spans),
                "failed_rule_count": len(failed_rules),
                "text_length": len(text),
            },
        )
        return DetectionReport(spans=spans, failed_rules=failed_rules)

    @staticmethod
    def _accept(rule: PatternRule, matched: str, preserve_age_under_90: bool) -> bool:
        if rule.validator is None:
            return True
        if rule.category is IdentifierCategory.AGE_OVER_89 and not preserve_age_under_90:
            return True
        validator = get_validator(rule.validator)
        if not validator:
            return True
        return validator.validate(matched)
