"""
Exceptions for diff section application.
"""

import enum
from typing import Any, Dict, List, Optional

from .models import ConflictInfo, ConflictKind, ValidationReport


class PatchApplicationError(Exception):
    """
    Exception raised when a patch cannot be applied.

    Attributes:
        message -- explanation of the error
        details -- additional details about the error
    """

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class SectionFormatError(PatchApplicationError):
    """Raised when raw section arguments cannot be turned into a DiffSection."""

    def __init__(self, message, section_index: Optional[int] = None):
        super().__init__(message, {"section_index": section_index})
        self.section_index = section_index


class ApplyErrorKind(str, enum.Enum):
    FILE_NOT_FOUND = "file_not_found"
    VALIDATION_FAILED = "validation_failed"
    REJECTED = "rejected"
    READ_FAILED = "read_failed"
    WRITE_FAILED = "write_failed"


class ErrorLevel(enum.IntEnum):
    """Levels of progressive disclosure for error messages."""
    SIMPLE = 1    # Basic "not found" message
    DETAILED = 2  # Show partial matches
    FULL = 3      # Complete diagnostic with all attempts


class ApplyDiffError(PatchApplicationError):
    """Base class for failures of an apply invocation."""
    kind: ApplyErrorKind

    def __init__(self, message: str, file_path: str, details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        details.setdefault("file_path", file_path)
        super().__init__(message, details)
        self.file_path = file_path

    def format(self, level: ErrorLevel = ErrorLevel.DETAILED) -> str:
        return f"Error: {self.message}"


class DiffFileNotFoundError(ApplyDiffError):
    kind = ApplyErrorKind.FILE_NOT_FOUND

    def __init__(self, file_path: str):
        super().__init__(
            f"File not found: {file_path}. Use end_line -1 or create mode to create it.",
            file_path,
        )


class DiffRejectedError(ApplyDiffError):
    kind = ApplyErrorKind.REJECTED

    def __init__(self, file_path: str, reason: str = "Changes were rejected"):
        super().__init__(f"{reason}: {file_path}", file_path, {"reason": reason})


class DiffReadError(ApplyDiffError):
    kind = ApplyErrorKind.READ_FAILED

    def __init__(self, file_path: str, cause: Exception):
        super().__init__(f"Failed to read {file_path}: {cause}", file_path, {"cause": str(cause)})
        self.cause = cause


class DiffWriteError(ApplyDiffError):
    kind = ApplyErrorKind.WRITE_FAILED

    def __init__(self, file_path: str, cause: Exception):
        super().__init__(
            f"Failed to write changes to {file_path}: {cause}",
            file_path,
            {"cause": str(cause)},
        )
        self.cause = cause


class DiffValidationError(ApplyDiffError):
    """Raised when sections cannot be located or overlap. Carries the full report."""
    kind = ApplyErrorKind.VALIDATION_FAILED

    def __init__(self, file_path: str, report: ValidationReport, message: Optional[str] = None):
        message = message or f"Validation failed for {file_path}"
        details = report.to_dict()
        not_found = self._first_not_found(report.conflicts)
        if not_found is not None and not_found.diagnostic is not None:
            diagnostic = not_found.diagnostic
            details["section_index"] = not_found.section_index
            details["expected"] = diagnostic.expected
            if diagnostic.best_match is not None:
                details["best_candidate"] = diagnostic.best_match.to_dict()
        super().__init__(message, file_path, details)
        self.report = report

    @staticmethod
    def _first_not_found(conflicts: List[ConflictInfo]) -> Optional[ConflictInfo]:
        for conflict in conflicts:
            if conflict.kind == ConflictKind.CONTENT_NOT_FOUND:
                return conflict
        return None

    def format(self, level: ErrorLevel = ErrorLevel.DETAILED) -> str:
        """
        Format the error based on disclosure level.

        SIMPLE gives the reason, DETAILED adds the searched text and best
        candidate per section, FULL adds every strategy attempt and the
        content found at the hinted location.
        """
        lines = ['Error: ' + self.message, '=' * 60]

        if level == ErrorLevel.SIMPLE:
            for conflict in self.report.conflicts:
                lines.append(f"- {conflict.description}")
            lines.append('\nSuggestion: Check if the code has been modified or update line numbers.')
            return '\n'.join(lines)

        for conflict in self.report.conflicts:
            lines.append(f"\n[{conflict.kind.value}] {conflict.description}")
            lines.append(f"Suggestion: {conflict.suggestion}")
            diagnostic = conflict.diagnostic
            if diagnostic is None:
                continue

            lines.append('\nExpected (search content):')
            lines.extend(['```', diagnostic.expected, '```'])

            best = diagnostic.best_match
            if best is not None:
                lines.append(
                    f"\nBest match found at line {best.start_line} "
                    f"(confidence: {best.confidence * 100:.1f}%, strategy: {best.strategy.value}):"
                )
                lines.extend(['```', best.actual_content, '```'])

            if level >= ErrorLevel.FULL:
                lines.append('\nValidation attempts:')
                for attempt in diagnostic.attempts:
                    if attempt.result is not None:
                        outcome = f"Match found (confidence: {attempt.result.confidence * 100:.1f}%)"
                    else:
                        outcome = "No match"
                    lines.append(f"  {attempt.name} (Level {attempt.level}): {outcome} "
                                 f"[{attempt.duration_ms:.2f}ms]")
                if diagnostic.hint_content is not None:
                    lines.append(f"\nContent at hinted line {diagnostic.hint_line}:")
                    lines.extend(['```', diagnostic.hint_content, '```'])

        if self.report.suggestions:
            lines.append('\nSuggestions:')
            lines.extend(f"- {s}" for s in self.report.suggestions)
        return '\n'.join(lines)
