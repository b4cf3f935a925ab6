"""
Validation of diff sections against a snapshot of the target file.
"""

from dataclasses import replace
from typing import List, Optional, Tuple

from patchmate.utils.logging_utils import logger
from ..application.content_matcher import ContentMatcher
from ..core.config import ApplyConfig
from ..core.models import (
    ConflictInfo,
    ConflictKind,
    DiagnosticInfo,
    DiffSection,
    MatchResult,
    MatchStrategy,
    ValidationReport,
)
from ..core.utils import clamp
from ..core.text_normalization import MatchingOptions, collapse_whitespace
from .strategy_hierarchy import StrategyHierarchy

# Lowest similarity reported as a "best candidate" when a section is not found
DIAGNOSTIC_SIMILARITY_FLOOR = 0.5

INVALID_SUGGESTION = "Fix all conflicts before applying the diff"
WARNING_SUGGESTION = "Review warnings - some matches required fuzzy matching"


def _preview(text: str, limit: int = 50) -> str:
    return text if len(text) <= limit else text[:limit] + '...'


def ranges_conflict(a: MatchResult, b: MatchResult) -> bool:
    """
    Check whether two located ranges cannot both be applied.

    A range with end < start is an insertion point before its start line. Two
    insertions conflict when they share a point; an insertion conflicts with
    a replaced range when it falls inside it.
    """
    a_insert = a.end_line < a.start_line
    b_insert = b.end_line < b.start_line
    if a_insert and b_insert:
        return a.start_line == b.start_line
    if a_insert:
        return b.start_line <= a.start_line <= b.end_line
    if b_insert:
        return a.start_line <= b.start_line <= a.end_line
    return a.overlaps(b)


def _full_file_match(lines: List[str], section: DiffSection) -> Optional[MatchResult]:
    """Resolve a sentinel section to the range from its start line to the end of the file."""
    start = clamp(section.start_line, 0, len(lines))
    actual_content = '\n'.join(lines[start:])

    if section.search.strip():
        search = section.search.replace('\r\n', '\n')
        if search != actual_content and collapse_whitespace(search) != collapse_whitespace(actual_content):
            return None

    return MatchResult(
        start_line=start,
        end_line=len(lines) - 1,
        confidence=1.0,
        strategy=MatchStrategy.FULL_FILE_REPLACEMENT,
        actual_content=actual_content,
    )


def _not_found(index: int, section: DiffSection, description: str, suggestion: str,
               diagnostic: Optional[DiagnosticInfo] = None) -> ConflictInfo:
    return ConflictInfo(
        kind=ConflictKind.CONTENT_NOT_FOUND,
        section_index=index,
        description=description,
        suggestion=suggestion,
        diagnostic=diagnostic or DiagnosticInfo(expected=section.search, hint_line=section.start_line),
    )


def _hint_content(lines: List[str], section: DiffSection) -> Optional[str]:
    if not 0 <= section.start_line < len(lines):
        return None
    end = clamp(section.end_line, section.start_line, len(lines) - 1)
    return '\n'.join(lines[section.start_line:end + 1])


def validate_diff_sections(lines: List[str],
                           sections: List[DiffSection],
                           options: Optional[MatchingOptions] = None,
                           file_exists: bool = True,
                           similarity_threshold: Optional[float] = None,
                           config: Optional[ApplyConfig] = None) -> ValidationReport:
    """
    Locate every section in the file and detect conflicts between them.

    A section that cannot be located, or whose range collides with an earlier
    one, is recorded as a conflict and processing continues with the rest.

    Args:
        lines: File lines without terminators
        sections: Sections in the caller's order
        options: Normalization used by the normalized and case-insensitive strategies
        file_exists: Whether the target file exists
        similarity_threshold: Overrides the configured similarity threshold
        config: Thresholds and radii; read from the environment when omitted

    Returns:
        ValidationReport whose matches follow the sections sorted by start line
    """
    config = config or ApplyConfig.from_env()
    report = ValidationReport(is_valid=False, sections=list(sections))

    if not file_exists:
        report.conflicts.append(ConflictInfo(
            kind=ConflictKind.FILE_NOT_FOUND,
            section_index=0,
            description="Target file does not exist",
            suggestion="Create the file first or use end_line -1 for a full file replacement",
        ))
        report.suggestions.append(INVALID_SUGGESTION)
        logger.warning("Validation failed: target file does not exist")
        return report

    matcher = ContentMatcher(options)
    hierarchy = StrategyHierarchy(
        options=matcher.options,
        similarity_threshold=similarity_threshold if similarity_threshold is not None
        else config.similarity_threshold,
        contextual_threshold=config.contextual_threshold,
        hint_radius=config.hint_radius,
        context_radius=config.context_radius,
    )

    # sorted() is stable, so equal start lines keep input order
    ordered = sorted(enumerate(sections), key=lambda item: item[1].start_line)
    sentinel_index: Optional[int] = None

    for index, section in ordered:
        logger.debug(f"Validating section {index}: lines {section.start_line}-{section.end_line}")
        match = None

        if section.is_full_file_replacement:
            if sentinel_index is not None:
                report.conflicts.append(ConflictInfo(
                    kind=ConflictKind.OVERLAP,
                    section_index=min(sentinel_index, index),
                    other_index=max(sentinel_index, index),
                    description=f"Sections {sentinel_index} and {index} are both full file replacements",
                    suggestion="Combine the full file replacements into a single section",
                ))
                continue
            sentinel_index = index
            match = _full_file_match(lines, section)
            if match is None:
                report.conflicts.append(_not_found(
                    index, section,
                    f"Full file replacement search content does not match the file from line {section.start_line}",
                    "Use empty search content with end_line -1, or make search match the file from start_line to the end",
                ))
                continue

        elif not lines:
            if section.search.strip():
                report.conflicts.append(_not_found(
                    index, section,
                    f"Cannot find content in empty file: {_preview(section.search)}",
                    "For empty files, use empty search content to insert at the top",
                ))
                continue
            match = MatchResult(
                start_line=0,
                end_line=-1,
                confidence=1.0,
                strategy=MatchStrategy.EMPTY_FILE_INSERT,
                actual_content='',
            )

        elif not section.search:
            report.conflicts.append(_not_found(
                index, section,
                f"Section {index} has empty search content",
                "Use end_line -1 to replace from start_line to the end of the file",
            ))
            continue

        else:
            outcome = hierarchy.execute_hierarchy(matcher, lines, section.search, section.start_line)
            match = outcome.match
            if match is None:
                logger.debug(hierarchy.generate_report(outcome.attempts))
                best = matcher.pick_best(
                    matcher.find_similar(lines, section.search, DIAGNOSTIC_SIMILARITY_FLOOR),
                    DIAGNOSTIC_SIMILARITY_FLOOR,
                    section.start_line,
                )
                report.conflicts.append(_not_found(
                    index, section,
                    f"Could not find content for section {index} near line {section.start_line}: "
                    f"{_preview(section.search)}",
                    "Check if the code has been modified, or update the search text and line numbers",
                    DiagnosticInfo(
                        expected=section.search,
                        hint_line=section.start_line,
                        hint_content=_hint_content(lines, section),
                        best_match=replace(best, section_index=index) if best else None,
                        attempts=tuple(outcome.attempts),
                    ),
                ))
                logger.warning(f"Section {index}: content not found after {len(outcome.attempts)} strategies")
                continue

        match = replace(match, section_index=index)

        for previous in report.matches:
            if ranges_conflict(match, previous):
                low, high = sorted((previous.section_index, index))
                report.conflicts.append(ConflictInfo(
                    kind=ConflictKind.OVERLAP,
                    section_index=low,
                    other_index=high,
                    description=f"Sections {low} and {high} overlap "
                                f"(lines {previous.start_line}-{previous.end_line} "
                                f"and {match.start_line}-{match.end_line})",
                    suggestion="Combine overlapping sections or adjust their line ranges",
                ))
                logger.warning(f"Sections {low} and {high} overlap")

        report.matches.append(match)

        if ContentMatcher.needs_confirmation(match):
            warning = (f"Section {index}: matched using {match.strategy.value} "
                       f"(confidence: {match.confidence * 100:.1f}%)")
            if match.issues:
                warning += f" - {'; '.join(match.issues)}"
            report.warnings.append(warning)

    report.is_valid = not report.conflicts
    if not report.is_valid:
        report.suggestions.append(INVALID_SUGGESTION)
    if report.warnings:
        report.suggestions.append(WARNING_SUGGESTION)

    logger.debug(f"Validation finished: {len(report.matches)} match(es), "
                 f"{len(report.conflicts)} conflict(s), {len(report.warnings)} warning(s)")
    return report


def resolve_partial(report: ValidationReport) -> Tuple[List[MatchResult], List[int]]:
    """
    Choose the largest safe subset of matches for partial application.

    Matches are kept greedily by confidence, highest first, with the lower
    section index winning ties. A match colliding with one already kept is
    skipped, as is every section without a match.

    Returns:
        Tuple of (kept matches in start-line order, sorted skipped indices)
    """
    kept: List[MatchResult] = []
    for match in sorted(report.matches, key=lambda m: (-m.confidence, m.section_index)):
        if any(ranges_conflict(match, other) for other in kept):
            logger.debug(f"Partial success: skipping section {match.section_index} "
                         f"(overlaps a higher-confidence section)")
            continue
        kept.append(match)

    # Duplicate full file replacements never get a match, so they are skipped here too
    kept_indices = {m.section_index for m in kept}
    skipped = sorted(i for i in range(len(report.sections)) if i not in kept_indices)
    kept.sort(key=lambda m: (m.start_line, m.section_index))
    return kept, skipped

