"""
Line ending handling for file snapshots.

Files are split into lines without terminators plus a parallel list of the
terminator each line had, so untouched lines can be written back exactly.
"""

import re
from typing import List, Tuple

_LINE_PATTERN = re.compile(r'([^\r\n]*)(\r\n|\n|\r|$)')


def detect_line_endings(content: str) -> Tuple[str, bool]:
    """
    Detect the dominant line ending in content and whether it has a final newline.

    Args:
        content: The content to analyze

    Returns:
        Tuple of (dominant_line_ending, has_final_newline)
    """
    crlf_count = content.count('\r\n')
    lf_count = content.count('\n') - crlf_count  # Subtract CRLF count to avoid double counting
    cr_count = content.count('\r') - crlf_count  # Subtract CRLF count to avoid double counting

    # Determine dominant line ending
    if crlf_count > 0 and crlf_count >= max(cr_count, lf_count):
        dominant_ending = '\r\n'
    elif cr_count > lf_count:
        dominant_ending = '\r'
    else:
        dominant_ending = '\n'

    # Check if content ends with a newline
    has_final_newline = bool(content) and content.endswith(('\n', '\r'))

    return dominant_ending, has_final_newline


def split_lines(content: str) -> Tuple[List[str], List[str]]:
    """
    Split content into lines and their terminators.

    The last line has an empty terminator when the file does not end with a
    newline. Empty content gives no lines.

    Returns:
        Tuple of (lines, endings) with equal lengths
    """
    lines: List[str] = []
    endings: List[str] = []
    if not content:
        return lines, endings

    for match in _LINE_PATTERN.finditer(content):
        text, ending = match.group(1), match.group(2)
        if not text and not ending:
            # Zero-width match at the end of the content
            break
        lines.append(text)
        endings.append(ending)
    return lines, endings


def join_lines(lines: List[str], endings: List[str]) -> str:
    """Reassemble content from lines and their terminators."""
    return ''.join(line + ending for line, ending in zip(lines, endings))


def normalize_line_endings(content: str, target_ending: str = '\n') -> str:
    """
    Normalize all line endings in content to the target ending.

    Args:
        content: The content to normalize
        target_ending: The target line ending ('\n', '\r\n', or '\r')

    Returns:
        Content with normalized line endings
    """
    normalized = content.replace('\r\n', '\n').replace('\r', '\n')
    if target_ending != '\n':
        normalized = normalized.replace('\n', target_ending)
    return normalized
