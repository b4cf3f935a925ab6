"""
Splice located replacements into a file snapshot.

Edits are applied from the bottom of the file to the top so that a splice
that changes the line count never shifts the range of an edit still pending.
"""

import re
from typing import List, Optional, Sequence

from patchmate.utils.logging_utils import logger
from ..core.indentation_handler import adapt_indentation as adapt_replacement_indentation
from ..core.models import ApprovedEdit, MatchStrategy
from .newline_handler import detect_line_endings, join_lines

_NEWLINE = re.compile(r'\r?\n')

# Strategies whose located text may differ from the search text
FUZZY_STRATEGIES = (MatchStrategy.NORMALIZED, MatchStrategy.CASE_INSENSITIVE,
                    MatchStrategy.CONTEXTUAL, MatchStrategy.SIMILARITY)

# Strategies whose range runs to the end of the file
TAIL_STRATEGIES = (MatchStrategy.FULL_FILE_REPLACEMENT, MatchStrategy.EMPTY_FILE_INSERT)


def split_replacement(new_content: str) -> List[str]:
    """Split replacement text into lines; empty text means no lines."""
    if new_content == '':
        return []
    return _NEWLINE.split(new_content)


def _dominant_ending(lines: List[str], endings: List[str], default_ending: str) -> str:
    if not any(endings):
        return default_ending
    dominant, _ = detect_line_endings(join_lines(lines, endings))
    return dominant


def build_modified_content(lines: Sequence[str],
                           edits: Sequence[ApprovedEdit],
                           line_endings: Optional[Sequence[str]] = None,
                           default_ending: str = '\n',
                           adapt_indentation: bool = True) -> str:
    """
    Produce the full modified text from the original lines and approved edits.

    Args:
        lines: Original file lines without terminators
        edits: Located ranges with their replacement text, in any order
        line_endings: Terminator of each original line. When omitted every
            line but the last ends with default_ending
        default_ending: Terminator for new lines when the file has none
        adapt_indentation: Re-indent replacements of non-exact matches

    Returns:
        The modified content as a single string
    """
    result = list(lines)
    if line_endings is None:
        endings = [default_ending] * len(result)
        if endings:
            endings[-1] = ''
    else:
        endings = list(line_endings)
    if len(endings) != len(result):
        raise ValueError(f"Got {len(endings)} line endings for {len(result)} lines")

    dominant = _dominant_ending(result, endings, default_ending)

    # reverse=True keeps edits with equal start lines in input order
    for edit in sorted(edits, key=lambda e: e.match.start_line, reverse=True):
        match = edit.match
        start = match.start_line
        end = max(match.end_line, start - 1)
        at_end_of_file = end + 1 >= len(result)

        old_lines = result[start:end + 1]
        old_endings = endings[start:end + 1]
        new_lines = split_replacement(edit.new_content)

        if adapt_indentation and match.strategy in FUZZY_STRATEGIES and new_lines:
            new_lines = adapt_replacement_indentation(new_lines, old_lines)

        # Interior lines reuse the terminator at the same offset; only the
        # last line of a file can have none
        new_endings = [old_endings[k] if k < len(old_endings) - 1 else dominant
                       for k in range(len(new_lines))]

        if match.strategy in TAIL_STRATEGIES:
            # A trailing newline in the replacement ends the file with one;
            # otherwise the file keeps its current final-newline state
            final_ending = old_endings[-1] if old_endings else ''
            if new_lines and new_lines[-1] == '':
                new_lines.pop()
                final_ending = dominant
            new_endings = [dominant] * len(new_lines)
            if new_lines:
                new_endings[-1] = final_ending
                if start > 0 and endings[start - 1] == '':
                    endings[start - 1] = dominant
            elif start > 0 and old_endings:
                endings[start - 1] = final_ending
        elif new_lines and old_endings:
            # The block keeps the terminator of the last line it replaces
            new_endings[-1] = old_endings[-1]
        elif new_lines and at_end_of_file and start > 0:
            # Appending after the last line keeps the file's final-newline state
            previous_final = endings[start - 1]
            if previous_final == '':
                endings[start - 1] = dominant
            new_endings[-1] = previous_final
        elif not new_lines and old_endings and at_end_of_file and start > 0:
            # Deleting the tail: the new last line inherits the old final terminator
            endings[start - 1] = old_endings[-1]

        result[start:end + 1] = new_lines
        endings[start:end + 1] = new_endings
        logger.debug(f"Spliced section {match.section_index}: lines {start}-{end} "
                     f"-> {len(new_lines)} line(s) ({match.strategy.value})")

    return join_lines(result, endings)
