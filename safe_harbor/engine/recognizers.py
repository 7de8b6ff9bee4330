# safe_harbor/engine/recognizers.py

"""Presidio pattern recognizers built from the Safe Harbor rule table."""

import logging
import re
from typing import Iterable, List, Optional

from presidio_analyzer import (
    AnalysisExplanation,
    Pattern,
    PatternRecognizer,
    RecognizerResult,
)
from presidio_analyzer.nlp_engine import NlpArtifacts

from safe_harbor.core.domain import PatternRule

logger = logging.getLogger(__name__)


class SafeHarborRecognizer(PatternRecognizer):
    """Pattern recognizer wrapping exactly one registry rule.

    The recognizer reports the rule's category name as its entity type and
    carries the rule so detections can be mapped back to a replacement.
    """

    def __init__(self, rule: PatternRule):
        self.rule = rule
        self._regex = re.compile(rule.regex, re.IGNORECASE if rule.ignore_case else 0)
        super().__init__(
            supported_entity=rule.category.name,
            name=f"{rule.name}_Recognizer",
            patterns=[Pattern(name=rule.name, regex=rule.regex, score=rule.score)],
            global_regex_flags=re.IGNORECASE if rule.ignore_case else 0,
        )

    def analyze(
        self,
        text: str,
        entities: List[str],
        nlp_artifacts: Optional[NlpArtifacts] = None,
        regex_flags: Optional[int] = None,
    ) -> List[RecognizerResult]:
        """Returns one result per regex match, in text order.

        A single regex yields non-overlapping matches, so the results are
        returned as found, without presidio's duplicate removal (which is
        quadratic in the number of matches).
        """
        results = []
        if entities and self.supported_entities[0] not in entities:
            return results

        for match in self._regex.finditer(text):
            start, end = match.span()
            if start == end:
                continue
            results.append(
                RecognizerResult(
                    entity_type=self.supported_entities[0],
                    start=start,
                    end=end,
                    score=self.rule.score,
                    analysis_explanation=AnalysisExplanation(
                        recognizer=self.name,
                        original_score=self.rule.score,
                        pattern_name=self.rule.name,
                        pattern=self.rule.regex,
                    ),
                )
            )
        return results


def create_all_recognizers(rules: Iterable[PatternRule]) -> List[SafeHarborRecognizer]:
    """Create one recognizer per rule, in registration order."""
    recognizers = [SafeHarborRecognizer(rule) for rule in rules]

    logger.info(f"Initialized {len(recognizers)} Safe Harbor recognizers")
    return recognizers
