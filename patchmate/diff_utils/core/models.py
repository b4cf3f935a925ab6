"""
Data structures shared by the matching, validation, merge and apply stages.

Records produced during a validation pass are frozen: a pass creates them
fresh and nothing downstream mutates them.
"""

import difflib
import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .config import FULL_FILE_SENTINEL


class MatchStrategy(str, enum.Enum):
    """Strategy that located a section's search text."""
    EXACT = "exact"
    NORMALIZED = "normalized"
    CASE_INSENSITIVE = "case_insensitive"
    SIMILARITY = "similarity"
    CONTEXTUAL = "contextual"
    FULL_FILE_REPLACEMENT = "full_file_replacement"
    EMPTY_FILE_INSERT = "empty_file_insert"


class ConflictKind(str, enum.Enum):
    """Reason a section cannot be applied as given."""
    OVERLAP = "overlap"
    CONTENT_NOT_FOUND = "content_not_found"
    FILE_NOT_FOUND = "file_not_found"


class ApplyStage(enum.Enum):
    """States of a single apply invocation."""
    VALIDATING = "validating"
    BUILDING_CONTENT = "building_content"
    REQUESTING_APPROVAL = "requesting_approval"
    COMMITTING = "committing"
    FAILED = "failed"
    REJECTED = "rejected"
    COMMITTED = "committed"
    WRITE_FAILED = "write_failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ApplyStage.FAILED, ApplyStage.REJECTED,
                        ApplyStage.COMMITTED, ApplyStage.WRITE_FAILED)


@dataclass(frozen=True)
class DiffSection:
    """One proposed edit. Line numbers are zero-based, inclusive hints."""
    start_line: int
    end_line: int
    search: str
    replace: str
    description: Optional[str] = None

    @property
    def is_full_file_replacement(self) -> bool:
        return self.end_line == FULL_FILE_SENTINEL


@dataclass(frozen=True)
class MatchResult:
    """Where a section's search text was actually found."""
    start_line: int
    end_line: int
    confidence: float
    strategy: MatchStrategy
    actual_content: str
    issues: Tuple[str, ...] = ()
    section_index: int = -1

    def overlaps(self, other: "MatchResult") -> bool:
        """Ranges overlap if start1 <= end2 and start2 <= end1."""
        return self.start_line <= other.end_line and other.start_line <= self.end_line

    def to_dict(self) -> Dict[str, Any]:
        return {
            "section_index": self.section_index,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "confidence": round(self.confidence, 4),
            "strategy": self.strategy.value,
            "actual_content": self.actual_content,
            "issues": list(self.issues),
        }


@dataclass(frozen=True)
class StrategyAttempt:
    """One strategy tried while locating a section."""
    name: str
    level: int
    result: Optional[MatchResult]
    duration_ms: float


@dataclass(frozen=True)
class DiagnosticInfo:
    """What was searched for and what was found instead."""
    expected: str
    hint_line: Optional[int] = None
    hint_content: Optional[str] = None
    best_match: Optional[MatchResult] = None
    attempts: Tuple[StrategyAttempt, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expected": self.expected,
            "hint_line": self.hint_line,
            "hint_content": self.hint_content,
            "best_match": self.best_match.to_dict() if self.best_match else None,
            "attempts": [
                {
                    "strategy": a.name,
                    "level": a.level,
                    "matched": a.result is not None,
                    "duration_ms": round(a.duration_ms, 3),
                }
                for a in self.attempts
            ],
        }


@dataclass(frozen=True)
class ConflictInfo:
    """A reason validation failed for one section or a pair of sections."""
    kind: ConflictKind
    section_index: int
    description: str
    suggestion: str
    other_index: Optional[int] = None
    diagnostic: Optional[DiagnosticInfo] = None

    @property
    def indices(self) -> Tuple[int, ...]:
        if self.other_index is None:
            return (self.section_index,)
        return (self.section_index, self.other_index)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "section_index": self.section_index,
            "other_index": self.other_index,
            "description": self.description,
            "suggestion": self.suggestion,
            "diagnostic": self.diagnostic.to_dict() if self.diagnostic else None,
        }


@dataclass
class ValidationReport:
    """Aggregate of one validation pass over a list of sections."""
    is_valid: bool
    matches: List[MatchResult] = field(default_factory=list)
    conflicts: List[ConflictInfo] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    sections: List[DiffSection] = field(default_factory=list)

    def match_for(self, section_index: int) -> Optional[MatchResult]:
        """Get the match for a section by its input index."""
        for match in self.matches:
            if match.section_index == section_index:
                return match
        return None

    def conflicting_indices(self) -> List[int]:
        """Get the sorted input indices named by any conflict."""
        indices = set()
        for conflict in self.conflicts:
            indices.update(conflict.indices)
        return sorted(indices)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "matches": [m.to_dict() for m in self.matches],
            "conflicts": [c.to_dict() for c in self.conflicts],
            "warnings": list(self.warnings),
            "suggestions": list(self.suggestions),
        }


@dataclass(frozen=True)
class ApprovedEdit:
    """A located range and the text that should replace it."""
    match: MatchResult
    new_content: str


@dataclass(frozen=True)
class ApprovalPreview:
    """Everything the approval collaborator needs to show the change."""
    file_path: str
    original: str
    modified: str
    description: str
    warnings: Tuple[str, ...] = ()
    matches: Tuple[MatchResult, ...] = ()

    def unified_diff(self, context_lines: int = 3) -> str:
        """Render the change as a unified diff."""
        diff = difflib.unified_diff(
            self.original.splitlines(keepends=True),
            self.modified.splitlines(keepends=True),
            fromfile=f"a/{self.file_path}",
            tofile=f"b/{self.file_path}",
            n=context_lines,
        )
        return ''.join(diff)


@dataclass
class ApplySummary:
    """Result of a committed apply."""
    file_path: str
    sections_applied: int
    sections_skipped: int = 0
    skipped_indices: List[int] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    confidence_profile: Dict[int, Tuple[str, float]] = field(default_factory=dict)

    @property
    def partial(self) -> bool:
        """Some, but not all, sections were applied."""
        return self.sections_skipped > 0 and self.sections_applied > 0

    @property
    def min_confidence(self) -> float:
        if not self.confidence_profile:
            return 1.0
        return min(conf for _, conf in self.confidence_profile.values())

    def format(self) -> str:
        lines = [f"Applied {self.sections_applied} diff section(s) to {self.file_path}"]
        if self.partial:
            lines[0] += f" ({self.sections_skipped} skipped: {self.skipped_indices})"
        for index in sorted(self.confidence_profile):
            strategy, confidence = self.confidence_profile[index]
            lines.append(f"  section {index}: {strategy} ({confidence:.2f})")
        if self.warnings:
            lines.append("Warnings:")
            lines.extend(f"  - {w}" for w in self.warnings)
        return '\n'.join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_path": self.file_path,
            "sections_applied": self.sections_applied,
            "sections_skipped": self.sections_skipped,
            "skipped_indices": list(self.skipped_indices),
            "partial": self.partial,
            "warnings": list(self.warnings),
            "confidence_profile": {
                str(index): {"strategy": strategy, "confidence": round(conf, 4)}
                for index, (strategy, conf) in self.confidence_profile.items()
            },
        }
