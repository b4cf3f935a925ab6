"""
Text normalization utilities for content matching.
"""

import re
from dataclasses import dataclass
from typing import List

_LEADING_TABS = re.compile(r'^\t+')
_LEADING_SPACE_RUN = re.compile(r'^ {2,}')
_WHITESPACE_RUN = re.compile(r'\s+')


@dataclass(frozen=True)
class MatchingOptions:
    """Normalization applied by normalized matching before comparing lines."""
    ignore_leading_whitespace: bool = True
    ignore_trailing_whitespace: bool = True
    normalize_indentation: bool = True
    ignore_empty_lines: bool = False
    case_sensitive: bool = True


DEFAULT_MATCHING_OPTIONS = MatchingOptions()


def normalize_line(line: str, options: MatchingOptions = DEFAULT_MATCHING_OPTIONS) -> str:
    """
    Normalize a single line according to the matching options.

    Args:
        line: The line to normalize (without terminator)
        options: Which normalizations to apply

    Returns:
        The normalized line
    """
    normalized = line
    if options.ignore_leading_whitespace:
        normalized = normalized.lstrip()
    if options.ignore_trailing_whitespace:
        normalized = normalized.rstrip()
    if options.normalize_indentation:
        # Tabs count as four columns, then any indentation run collapses to one space
        normalized = _LEADING_TABS.sub(lambda m: '    ' * len(m.group(0)), normalized)
        normalized = _LEADING_SPACE_RUN.sub(' ', normalized)
    if not options.case_sensitive:
        normalized = normalized.lower()
    return normalized


def normalize_lines(lines: List[str], options: MatchingOptions = DEFAULT_MATCHING_OPTIONS) -> List[str]:
    """
    Normalize a block of lines, dropping blank lines when ignore_empty_lines is set.
    """
    result = []
    for line in lines:
        if options.ignore_empty_lines and not line.strip():
            continue
        result.append(normalize_line(line, options))
    return result


def normalize_content(content: str, options: MatchingOptions = DEFAULT_MATCHING_OPTIONS) -> str:
    """Normalize a newline-separated block of text."""
    return '\n'.join(normalize_lines(content.split('\n'), options))


def collapse_whitespace(text: str) -> str:
    """Collapse all runs of whitespace to single spaces and strip."""
    return _WHITESPACE_RUN.sub(' ', text).strip()
