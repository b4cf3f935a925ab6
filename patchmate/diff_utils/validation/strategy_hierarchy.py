"""
Ordered matching strategies with early termination.

Each strategy is a plain callable returning a MatchResult or None. The
hierarchy walks them from strict to permissive and stops at the first hit.
"""

import time
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional

from patchmate.utils.logging_utils import logger
from ..application.content_matcher import ContentMatcher
from ..core.config import (
    DEFAULT_CONTEXT_RADIUS,
    DEFAULT_CONTEXTUAL_THRESHOLD,
    DEFAULT_HINT_RADIUS,
    DEFAULT_SIMILARITY_THRESHOLD,
)
from ..core.models import MatchResult, StrategyAttempt
from ..core.text_normalization import MatchingOptions

StrategyFn = Callable[[ContentMatcher, List[str], str, Optional[int]], Optional[MatchResult]]


@dataclass(frozen=True)
class Strategy:
    """A named matching strategy."""
    name: str
    level: int
    description: str
    execute: StrategyFn


@dataclass
class HierarchyOutcome:
    """Result of running the hierarchy for one section."""
    match: Optional[MatchResult]
    attempts: List[StrategyAttempt] = field(default_factory=list)
    total_duration_ms: float = 0.0


def _flag_duplicates(matcher: ContentMatcher, lines: List[str], target: str,
                     match: Optional[MatchResult], start_hint: Optional[int]) -> Optional[MatchResult]:
    """Attach a multiple-match issue when the exact text occurs elsewhere too."""
    if match is None:
        return None
    occurrences = len(matcher.find_all_exact(lines, target))
    if occurrences <= 1:
        return match
    issue = f"Found {occurrences} identical matches. Using closest to line {start_hint}."
    return replace(match, issues=match.issues + (issue,))


class StrategyHierarchy:
    """Manages matching strategies with progressive fallback."""

    def __init__(self,
                 options: Optional[MatchingOptions] = None,
                 similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
                 contextual_threshold: float = DEFAULT_CONTEXTUAL_THRESHOLD,
                 hint_radius: int = DEFAULT_HINT_RADIUS,
                 context_radius: int = DEFAULT_CONTEXT_RADIUS):
        self.options = options or MatchingOptions()
        self.similarity_threshold = similarity_threshold
        self.contextual_threshold = contextual_threshold
        self.hint_radius = hint_radius
        self.context_radius = context_radius
        self.strategies: List[Strategy] = []
        self._initialize_strategies()

    def _initialize_strategies(self) -> None:
        # Level 1: strict
        self.strategies.append(Strategy(
            name='exact-at-hint',
            level=1,
            description='Exact match at hinted line location',
            execute=lambda m, lines, target, hint: None if hint is None else _flag_duplicates(
                m, lines, target, m.find_exact_near_hint(lines, target, hint, radius=0), hint),
        ))
        self.strategies.append(Strategy(
            name='exact-near-hint',
            level=1,
            description=f'Exact match near hinted line (±{self.hint_radius} lines)',
            execute=lambda m, lines, target, hint: None if hint is None else _flag_duplicates(
                m, lines, target, m.find_exact_near_hint(lines, target, hint, radius=self.hint_radius), hint),
        ))
        self.strategies.append(Strategy(
            name='exact',
            level=1,
            description='Character-for-character exact matching, closest to the hint',
            execute=lambda m, lines, target, hint: m.find_best_exact_with_hint(lines, target, hint),
        ))

        # Level 2: permissive
        self.strategies.append(Strategy(
            name='normalized',
            level=2,
            description='Whitespace-normalized matching',
            execute=lambda m, lines, target, hint: m.find_normalized(lines, target, self.options, hint),
        ))
        self.strategies.append(Strategy(
            name='case-insensitive',
            level=2,
            description='Case-insensitive matching',
            execute=lambda m, lines, target, hint: m.find_case_insensitive(lines, target, self.options, hint),
        ))

        # Level 3: fuzzy
        self.strategies.append(Strategy(
            name='contextual',
            level=3,
            description='Contextual matching using surrounding code',
            execute=lambda m, lines, target, hint: m.find_contextual(
                lines, target, self.context_radius, self.contextual_threshold, hint),
        ))
        self.strategies.append(Strategy(
            name='similarity',
            level=3,
            description=f'Edit-distance similarity matching ({self.similarity_threshold:.0%}+)',
            execute=lambda m, lines, target, hint: m.pick_best(
                m.find_similar(lines, target, self.similarity_threshold),
                self.similarity_threshold, hint),
        ))

    def execute_hierarchy(self, matcher: ContentMatcher, lines: List[str], target: str,
                          start_hint: Optional[int] = None) -> HierarchyOutcome:
        """
        Run strategies in order until one finds a match.

        Args:
            matcher: The content matcher to use
            lines: The file lines
            target: The search text
            start_hint: The caller's line hint

        Returns:
            HierarchyOutcome with the match (or None) and every attempt made
        """
        outcome = HierarchyOutcome(match=None)
        started = time.perf_counter()

        for strategy in self.strategies:
            attempt_start = time.perf_counter()
            result = strategy.execute(matcher, lines, target, start_hint)
            outcome.attempts.append(StrategyAttempt(
                name=strategy.name,
                level=strategy.level,
                result=result,
                duration_ms=(time.perf_counter() - attempt_start) * 1000,
            ))
            if result is not None:
                logger.debug(f"Match found with {strategy.name} at lines "
                             f"{result.start_line}-{result.end_line} (confidence: {result.confidence:.2f})")
                outcome.match = result
                break

        outcome.total_duration_ms = (time.perf_counter() - started) * 1000
        return outcome

    def get_strategies_by_level(self, level: int) -> List[Strategy]:
        return [s for s in self.strategies if s.level == level]

    def generate_report(self, attempts: List[StrategyAttempt]) -> str:
        """Generate a detailed report of validation attempts."""
        descriptions = {s.name: s.description for s in self.strategies}
        lines = ['Validation Hierarchy Report:', '=' * 50]

        for attempt in attempts:
            lines.append(f"\nStrategy: {attempt.name} (Level {attempt.level})")
            lines.append(f"Description: {descriptions.get(attempt.name, '')}")
            lines.append(f"Duration: {attempt.duration_ms:.2f}ms")
            if attempt.result is not None:
                lines.append('Result: MATCH FOUND')
                lines.append(f"  - Confidence: {attempt.result.confidence * 100:.1f}%")
                lines.append(f"  - Lines: {attempt.result.start_line}-{attempt.result.end_line}")
                if attempt.result.issues:
                    lines.append(f"  - Issues: {', '.join(attempt.result.issues)}")
            else:
                lines.append('Result: NO MATCH')

        return '\n'.join(lines)
