"""
diff_utils package - Locate and apply diff sections to text files.

This package provides functionality for matching section content against a
file, validating sections for conflicts, and applying them atomically.
"""

# Core utilities
from .core import (
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
    DiffSection,
    MatchResult,
    MatchStrategy,
    ValidationReport,
    ApplySummary,
    ApplyStage,
    ApprovalPreview,
    MatchingOptions,
    ApplyConfig,
)

# Parsing utilities
from .parsing import normalize_diff_sections

# Application utilities
from .application import ContentMatcher, build_modified_content

# Validation utilities
from .validation import validate_diff_sections, resolve_partial, StrategyHierarchy, StructuralValidator

# File operation utilities
from .file_ops import FileStorage, LocalFileStorage, InMemoryFileStorage

# Pipeline utilities
from .pipeline import ApplyDiffOrchestrator, apply_diff, ApprovalHandler, AutoApprovalHandler, CallbackApprovalHandler
