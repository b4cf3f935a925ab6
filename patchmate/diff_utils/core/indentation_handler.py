"""
Indentation handling utilities for section replacement.
"""

import logging
import re
from typing import List

logger = logging.getLogger(__name__)

_LEADING_WS = re.compile(r'^[ \t]*')


def get_leading_whitespace(line: str) -> str:
    """Return the run of spaces and tabs at the start of a line."""
    return _LEADING_WS.match(line).group(0)


def _shift(line: str, delta: int, pad: str) -> str:
    if delta > 0:
        return pad + line
    if delta < 0:
        return line[min(-delta, len(get_leading_whitespace(line))):]
    return line


def adapt_indentation(new_lines: List[str], matched_lines: List[str]) -> List[str]:
    """
    Carry the file's indentation over to replacement lines.

    Used when the search text was located by a non-exact strategy: the caller
    often sends de-indented text. When no replacement line is indented, each
    one takes the indentation of the matched line at the same offset, falling
    back to the first matched line's indentation. Otherwise the block is
    re-based: every line moves by the difference between the first matched
    line's indentation and the first replacement line's, so nesting inside
    the replacement is kept. Blank lines are left untouched.

    Args:
        new_lines: Replacement lines
        matched_lines: Lines currently occupying the matched range

    Returns:
        The replacement lines with indentation applied
    """
    if not matched_lines:
        return list(new_lines)

    base_indent = get_leading_whitespace(matched_lines[0])
    content = [line for line in new_lines if line.strip()]
    if not content:
        return list(new_lines)

    if not any(get_leading_whitespace(line) for line in content):
        adapted = []
        for index, line in enumerate(new_lines):
            if not line.strip():
                adapted.append(line)
                continue
            indent = base_indent
            if index < len(matched_lines):
                indent = get_leading_whitespace(matched_lines[index]) or base_indent
            adapted.append(indent + line)
    else:
        first_indent = get_leading_whitespace(content[0])
        delta = len(base_indent) - len(first_indent)
        pad = base_indent[:max(delta, 0)]
        adapted = [_shift(line, delta, pad) if line.strip() else line for line in new_lines]

    if adapted != list(new_lines):
        logger.debug(f"Adapted indentation for {len(new_lines)} replacement line(s)")
    return adapted
