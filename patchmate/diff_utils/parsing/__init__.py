"""
Parsing utilities for the diff_utils package.

This module converts caller-supplied section arguments into DiffSection records.
"""

from .section_parser import normalize_diff_section, normalize_diff_sections
