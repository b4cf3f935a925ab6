"""
Core utilities for diff section application.
"""

from .utils import clamp, levenshtein_distance, calculate_similarity, bounded_similarity
from .exceptions import (
    PatchApplicationError,
    SectionFormatError,
    ApplyDiffError,
    ApplyErrorKind,
    ErrorLevel,
    DiffFileNotFoundError,
    DiffValidationError,
    DiffRejectedError,
    DiffReadError,
    DiffWriteError,
)
from .models import (
    DiffSection,
    MatchResult,
    MatchStrategy,
    ConflictInfo,
    ConflictKind,
    DiagnosticInfo,
    StrategyAttempt,
    ValidationReport,
    ApprovedEdit,
    ApprovalPreview,
    ApplySummary,
    ApplyStage,
)
from .text_normalization import MatchingOptions
from .config import ApplyConfig, FULL_FILE_SENTINEL
