"""
Validation utilities for the diff_utils package.

This module locates diff sections in a file and checks them for conflicts.
"""

from .strategy_hierarchy import Strategy, StrategyHierarchy, HierarchyOutcome
from .validators import validate_diff_sections, resolve_partial, ranges_conflict
from .structural_validator import StructuralValidator, StructuralWarning, StructuralValidationResult
