"""
Utilities for locating a section's search text in the current file.

Strategies are provided in increasing permissiveness: exact, normalized,
case-insensitive, contextual and similarity. Every strategy works on a list of
lines without terminators and returns MatchResult records; none of them mutate
their input.
"""

from dataclasses import replace
from typing import List, Optional, Sequence

from patchmate.utils.logging_utils import logger
from ..core.config import (
    CASE_INSENSITIVE_MATCH_CONFIDENCE,
    CONFIRMATION_THRESHOLD,
    CONTEXT_CONTENT_WEIGHT,
    CONTEXT_SIDE_WEIGHT,
    DEFAULT_CONTEXTUAL_THRESHOLD,
    DEFAULT_MIN_CONFIDENCE,
    EXACT_MATCH_CONFIDENCE,
    NORMALIZED_MATCH_CONFIDENCE,
    SIGNIFICANT_DIFFERENCE_THRESHOLD,
)
from ..core.models import MatchResult, MatchStrategy
from ..core.text_normalization import MatchingOptions, normalize_lines
from ..core.utils import bounded_similarity


_FORMATTING_ISSUE = 'Content differs in whitespace or formatting'


def _split_target(target: str) -> List[str]:
    """Split target into lines; one trailing newline ends the last line."""
    target_lines = target.split('\n')
    if len(target_lines) > 1 and target_lines[-1] == '':
        target_lines.pop()
    return target_lines


def _multiple_match_issue(count: int, start_hint: Optional[int]) -> str:
    if start_hint is None:
        return f"Found {count} identical matches. Using the first one."
    return f"Found {count} identical matches. Using closest to line {start_hint}."


def _closest_to_hint(candidates: Sequence[MatchResult], start_hint: Optional[int]) -> MatchResult:
    """Pick the candidate nearest the hint; earlier lines win ties."""
    if start_hint is None:
        return candidates[0]
    return min(candidates, key=lambda m: (abs(m.start_line - start_hint), m.start_line))


class ContentMatcher:
    """Locate a block of text inside a list of lines."""

    def __init__(self, options: Optional[MatchingOptions] = None):
        self.options = options or MatchingOptions()

    # ------------------------------------------------------------------
    # Exact matching
    # ------------------------------------------------------------------

    def find_exact(self, lines: List[str], target: str, start_hint: Optional[int] = None) -> Optional[MatchResult]:
        """
        Find the first exact occurrence of target at or after start_hint.

        Args:
            lines: The file lines
            target: The text to look for, lines separated by '\n'
            start_hint: Line to start scanning from (0 when None)

        Returns:
            A MatchResult with confidence 1.0, or None
        """
        target_lines = _split_target(target)
        count = len(target_lines)
        search_start = max(0, start_hint or 0)

        for i in range(search_start, len(lines) - count + 1):
            if lines[i:i + count] == target_lines:
                return MatchResult(
                    start_line=i,
                    end_line=i + count - 1,
                    confidence=EXACT_MATCH_CONFIDENCE,
                    strategy=MatchStrategy.EXACT,
                    actual_content='\n'.join(lines[i:i + count]),
                )
        return None

    def find_all_exact(self, lines: List[str], target: str) -> List[MatchResult]:
        """Find all non-overlapping exact occurrences of target, top to bottom."""
        matches = []
        position = 0
        while True:
            match = self.find_exact(lines, target, position)
            if match is None:
                break
            matches.append(match)
            # Skip past this match
            position = match.end_line + 1
        return matches

    def find_exact_near_hint(self, lines: List[str], target: str, start_hint: int,
                             radius: int = -1) -> Optional[MatchResult]:
        """
        Find an exact match starting within radius lines of the hint.

        The search expands outward one line at a time, trying the line before
        the hint before the line after it. A negative radius searches the whole
        file.
        """
        target_lines = _split_target(target)
        count = len(target_lines)
        max_radius = len(lines) if radius < 0 else radius

        def matches_at(i: int) -> bool:
            return 0 <= i <= len(lines) - count and lines[i:i + count] == target_lines

        for distance in range(0, max_radius + 1):
            for i in ((start_hint,) if distance == 0 else (start_hint - distance, start_hint + distance)):
                if matches_at(i):
                    return MatchResult(
                        start_line=i,
                        end_line=i + count - 1,
                        confidence=EXACT_MATCH_CONFIDENCE,
                        strategy=MatchStrategy.EXACT,
                        actual_content='\n'.join(lines[i:i + count]),
                    )
        return None

    def find_best_exact_with_hint(self, lines: List[str], target: str,
                                  start_hint: Optional[int]) -> Optional[MatchResult]:
        """
        Find all exact occurrences and keep the one closest to the hint.

        When the text occurs more than once the result carries an issue, so
        the ambiguity is surfaced as a warning rather than silently resolved.
        """
        all_matches = self.find_all_exact(lines, target)
        if not all_matches:
            return None
        if len(all_matches) == 1:
            return all_matches[0]

        best = _closest_to_hint(all_matches, start_hint)
        logger.debug(f"Exact text found {len(all_matches)} times, using line {best.start_line}")
        return MatchResult(
            start_line=best.start_line,
            end_line=best.end_line,
            confidence=best.confidence,
            strategy=best.strategy,
            actual_content=best.actual_content,
            issues=best.issues + (_multiple_match_issue(len(all_matches), start_hint),),
        )

    # ------------------------------------------------------------------
    # Normalized matching
    # ------------------------------------------------------------------

    def find_normalized(self, lines: List[str], target: str, options: Optional[MatchingOptions] = None,
                        start_hint: Optional[int] = None) -> Optional[MatchResult]:
        """
        Find target after normalizing whitespace (and optionally case).

        Every window equal to the target after normalization is a candidate;
        the one nearest the hint wins. Confidence is 0.9.
        """
        opts = options or self.options
        target_lines = _split_target(target)
        normalized_target = normalize_lines(target_lines, opts)
        if not normalized_target:
            return None

        candidates = []
        for start, end in self._windows(lines, len(normalized_target), opts):
            window = lines[start:end + 1]
            if normalize_lines(window, opts) != normalized_target:
                continue
            actual_content = '\n'.join(window)
            issues = ()
            if window != target_lines:
                issues = (_FORMATTING_ISSUE,)
            candidates.append(MatchResult(
                start_line=start,
                end_line=end,
                confidence=NORMALIZED_MATCH_CONFIDENCE,
                strategy=MatchStrategy.NORMALIZED,
                actual_content=actual_content,
                issues=issues,
            ))

        if not candidates:
            return None

        best = _closest_to_hint(candidates, start_hint)
        if len(candidates) > 1:
            best = MatchResult(
                start_line=best.start_line,
                end_line=best.end_line,
                confidence=best.confidence,
                strategy=best.strategy,
                actual_content=best.actual_content,
                issues=best.issues + (_multiple_match_issue(len(candidates), start_hint),),
            )
        return best

    def find_case_insensitive(self, lines: List[str], target: str, options: Optional[MatchingOptions] = None,
                              start_hint: Optional[int] = None) -> Optional[MatchResult]:
        """Normalized matching that also ignores letter case. Confidence is 0.85."""
        opts = replace(options or self.options, case_sensitive=False)
        match = self.find_normalized(lines, target, opts, start_hint)
        if match is None:
            return None
        issues = tuple(issue for issue in match.issues if issue != _FORMATTING_ISSUE)
        if match.actual_content.split('\n') != _split_target(target):
            issues = ('Content differs in letter case or formatting',) + issues
        return replace(match, confidence=CASE_INSENSITIVE_MATCH_CONFIDENCE,
                       strategy=MatchStrategy.CASE_INSENSITIVE, issues=issues)

    def _windows(self, lines: List[str], normalized_count: int, opts: MatchingOptions):
        """
        Yield (start, end) ranges holding normalized_count normalized lines.

        Without ignore_empty_lines every window has a fixed size. With it, a
        window starts on a non-blank line and extends until it covers enough
        non-blank lines, so blank lines inside the block are skipped.
        """
        if not opts.ignore_empty_lines:
            for start in range(0, len(lines) - normalized_count + 1):
                yield start, start + normalized_count - 1
            return

        for start in range(len(lines)):
            if not lines[start].strip():
                continue
            seen = 0
            for end in range(start, len(lines)):
                if lines[end].strip():
                    seen += 1
                if seen == normalized_count:
                    yield start, end
                    break

    # ------------------------------------------------------------------
    # Similarity matching
    # ------------------------------------------------------------------

    def find_similar(self, lines: List[str], target: str, threshold: float = 0.8) -> List[MatchResult]:
        """
        Score every window of the target's line count by edit distance.

        Returns all windows scoring at least threshold, sorted by confidence
        descending (file order among equal scores).
        """
        target_lines = _split_target(target)
        target = '\n'.join(target_lines)
        count = len(target_lines)
        results = []

        for i in range(0, len(lines) - count + 1):
            actual_content = '\n'.join(lines[i:i + count])
            similarity = bounded_similarity(target, actual_content, threshold)
            if similarity is not None:
                results.append(MatchResult(
                    start_line=i,
                    end_line=i + count - 1,
                    confidence=similarity,
                    strategy=MatchStrategy.SIMILARITY,
                    actual_content=actual_content,
                    issues=('Content has significant differences',)
                    if similarity < SIGNIFICANT_DIFFERENCE_THRESHOLD else (),
                ))

        results.sort(key=lambda m: -m.confidence)
        logger.debug(f"Similarity search found {len(results)} window(s) at or above {threshold}")
        return results

    # ------------------------------------------------------------------
    # Contextual matching
    # ------------------------------------------------------------------

    def find_contextual(self, lines: List[str], target: str, context_radius: int = 2,
                        threshold: float = DEFAULT_CONTEXTUAL_THRESHOLD,
                        start_hint: Optional[int] = None) -> Optional[MatchResult]:
        """
        Find the window best supported by its content and surrounding code.

        A window is a candidate when its content similarity exceeds threshold
        and so does its plausibility, which weighs the content with the
        presence of non-blank lines before and after it. A weak window with
        nothing around it is therefore left to similarity matching.
        Candidates are ranked by plausibility; equal scores go to the window
        nearest the hint, then the earlier one. The reported confidence is
        the content similarity.
        """
        target_lines = _split_target(target)
        target = '\n'.join(target_lines)
        count = len(target_lines)
        candidates = []

        for i in range(0, len(lines) - count + 1):
            actual_content = '\n'.join(lines[i:i + count])
            content_similarity = bounded_similarity(target, actual_content, threshold)
            if content_similarity is None or content_similarity <= threshold:
                continue

            score = CONTEXT_CONTENT_WEIGHT * content_similarity
            score += CONTEXT_SIDE_WEIGHT * self._context_presence(lines, i - context_radius, i, context_radius)
            score += CONTEXT_SIDE_WEIGHT * self._context_presence(lines, i + count, i + count + context_radius,
                                                                  context_radius)
            logger.debug(f"Contextual candidate at line {i}: content {content_similarity:.3f}, "
                         f"plausibility {score:.3f}")
            if score <= threshold:
                continue
            candidates.append((score, i, content_similarity, actual_content))

        if not candidates:
            return None

        def rank(candidate):
            score, i = candidate[0], candidate[1]
            distance = abs(i - start_hint) if start_hint is not None else 0
            return -score, distance, i

        _, i, content_similarity, actual_content = min(candidates, key=rank)
        logger.debug(f"Contextual match at line {i} chosen from {len(candidates)} candidate(s)")
        return MatchResult(
            start_line=i,
            end_line=i + count - 1,
            confidence=content_similarity,
            strategy=MatchStrategy.CONTEXTUAL,
            actual_content=actual_content,
            issues=('Content found using contextual matching',)
            if content_similarity < CONFIRMATION_THRESHOLD else (),
        )

    @staticmethod
    def _context_presence(lines: List[str], start: int, end: int, radius: int) -> float:
        """Fraction of the radius covered by non-blank lines in [start, end)."""
        if radius <= 0:
            return 0.0
        present = sum(1 for line in lines[max(0, start):max(0, end)] if line.strip())
        return min(present, radius) / radius

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def pick_best(self, candidates: Sequence[MatchResult], min_confidence: float = DEFAULT_MIN_CONFIDENCE,
                  start_hint: Optional[int] = None) -> Optional[MatchResult]:
        """
        Select the highest-confidence candidate at or above min_confidence.

        Candidates with equal confidence are separated by distance to the hint.
        """
        valid = [c for c in candidates if c.confidence >= min_confidence]
        if not valid:
            return None
        top = max(c.confidence for c in valid)
        tied = [c for c in valid if c.confidence == top]
        return _closest_to_hint(tied, start_hint)

    @staticmethod
    def needs_confirmation(match: MatchResult) -> bool:
        """Whether a match should be surfaced in the approval step."""
        return match.confidence < CONFIRMATION_THRESHOLD or len(match.issues) > 0
