"""
Application utilities for the diff_utils package.

This module locates section content in a file and splices replacements into it.
"""

from .content_matcher import ContentMatcher
from .section_merger import build_modified_content, split_replacement
from .newline_handler import detect_line_endings, split_lines, join_lines, normalize_line_endings
