# safe_harbor/engine/resolver.py

"""Span resolver: collapses overlapping or adjacent matches before substitution."""

import logging
from typing import Iterable, List

from safe_harbor.core.domain import MatchSpan, ResolvedSpan

logger = logging.getLogger(__name__)


def resolve(spans: Iterable[MatchSpan]) -> List[ResolvedSpan]:
    """Merges raw spans into a pairwise non-overlapping, ascending partition.

    Spans are grouped greedily: a span joins the current group when it
    starts at or before the group's end (overlap or adjacency). Each group
    becomes one ResolvedSpan covering the union of its members, labelled
    with the highest-priority category (a rule may override its category's
    rank); equal ranks go to the rule registered first.

    Args:
        spans: Raw detector output, in any order

    Returns:
        Resolved spans sorted by start offset
    """
    ordered = sorted(spans, key=lambda s: (s.start, s.rule.order))

    resolved: List[ResolvedSpan] = []
    group: List[MatchSpan] = []
    group_end = -1

    for span in ordered:
        if group and span.start <= group_end:
            group.append(span)
            group_end = max(group_end, span.end)
            continue

        if group:
            resolved.append(_collapse(group))
        group = [span]
        group_end = span.end

    if group:
        resolved.append(_collapse(group))

    merged = sum(1 for r in resolved if len(r.members) > 1)
    if merged:
        logger.debug(
            "Merged overlapping spans",
            extra={"raw_count": len(ordered), "resolved_count": len(resolved)},
        )

    return resolved


def _collapse(group: List[MatchSpan]) -> ResolvedSpan:
    winner = min(group, key=lambda s: (s.rule.rank, s.rule.order))
    return ResolvedSpan(
        start=group[0].start,
        end=max(s.end for s in group),
        category=winner.category,
        rule=winner.rule,
        members=tuple(group),
    )
