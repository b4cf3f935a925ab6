"""
Boundary adapter turning loosely-typed section arguments into DiffSection.

Callers send sections as plain dicts, in camelCase or snake_case, sometimes
with the older originalContent/newContent names. Everything downstream only
sees DiffSection.
"""

from typing import Any, Iterable, List, Mapping, Optional, Union

from patchmate.utils.logging_utils import logger
from ..application.newline_handler import normalize_line_endings
from ..core.config import FULL_FILE_SENTINEL
from ..core.exceptions import SectionFormatError
from ..core.models import DiffSection

# Accepted spellings for each field, preferred name first
FIELD_ALIASES = {
    'start_line': ('start_line', 'startLine'),
    'end_line': ('end_line', 'endLine'),
    'search': ('search',),
    'replace': ('replace',),
    'description': ('description',),
}

DEPRECATED_FIELDS = {
    'search': 'originalContent',
    'replace': 'newContent',
}


def _lookup(raw: Mapping[str, Any], field_name: str) -> Optional[Any]:
    for key in FIELD_ALIASES[field_name]:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _parse_line(value: Any, name: str, index: int) -> int:
    if value is None:
        raise SectionFormatError(f"Diff section {index} missing required '{name}' parameter", index)
    if isinstance(value, bool):
        raise SectionFormatError(f"Diff section {index} has invalid '{name}': {value!r}", index)
    if isinstance(value, float):
        if not value.is_integer():
            raise SectionFormatError(f"Diff section {index} has non-integer '{name}': {value!r}", index)
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise SectionFormatError(f"Diff section {index} has invalid '{name}': {value!r}", index)


def _text_field(raw: Mapping[str, Any], field_name: str, index: int) -> str:
    value = _lookup(raw, field_name)
    if value is None:
        legacy = DEPRECATED_FIELDS[field_name]
        if raw.get(legacy) is not None:
            logger.warning(f"Deprecation warning: '{legacy}' parameter in diff[{index}] is deprecated. "
                           f"Use '{field_name}' instead.")
            value = raw[legacy]
    if value is None:
        raise SectionFormatError(f"Diff section {index} missing required '{field_name}' parameter", index)
    if not isinstance(value, str):
        raise SectionFormatError(f"Diff section {index} '{field_name}' must be a string", index)
    return normalize_line_endings(value)


def _strip_final_newline(text: str) -> str:
    return text[:-1] if text.endswith('\n') else text


def normalize_diff_section(raw: Union[Mapping[str, Any], DiffSection], index: int = 0) -> DiffSection:
    """
    Convert one raw section into a DiffSection.

    Args:
        raw: A mapping of section fields, or an existing DiffSection
        index: Position of the section in the caller's list, for messages

    Returns:
        The validated DiffSection

    Raises:
        SectionFormatError: If a field is missing or malformed
    """
    if isinstance(raw, DiffSection):
        raw = {
            'start_line': raw.start_line,
            'end_line': raw.end_line,
            'search': raw.search,
            'replace': raw.replace,
            'description': raw.description,
        }
    if not isinstance(raw, Mapping):
        raise SectionFormatError(f"Diff section {index} must be an object, got {type(raw).__name__}", index)

    start_line = _parse_line(_lookup(raw, 'start_line'), 'startLine', index)
    end_line = _parse_line(_lookup(raw, 'end_line'), 'endLine', index)
    search = _text_field(raw, 'search', index)
    replace = _text_field(raw, 'replace', index)
    description = _lookup(raw, 'description')

    if start_line < 0:
        raise SectionFormatError(f"Diff section {index} has negative startLine: {start_line}", index)

    if end_line == FULL_FILE_SENTINEL:
        logger.debug(f"Diff {index}: endLine -1 detected, full file replacement from line {start_line}")
    else:
        if end_line < start_line:
            raise SectionFormatError(
                f"Diff section {index} has endLine {end_line} before startLine {start_line}", index)
        # The matched lines keep their own terminators, so one trailing
        # newline on either text is a line terminator, not an extra line.
        if search.endswith('\n') or replace.endswith('\n'):
            logger.debug(f"Diff {index}: dropping trailing newline from search/replace")
            search = _strip_final_newline(search)
            replace = _strip_final_newline(replace)
        if search == '' and replace == '':
            raise SectionFormatError(
                f"Diff section {index} cannot have both empty 'search' and 'replace' parameters "
                f"for regular diffs", index)

    return DiffSection(
        start_line=start_line,
        end_line=end_line,
        search=search,
        replace=replace,
        description=str(description) if description is not None else None,
    )


def normalize_diff_sections(raw_sections: Iterable[Union[Mapping[str, Any], DiffSection]]) -> List[DiffSection]:
    """Normalize a list of raw sections, raising SectionFormatError on the first bad one."""
    if raw_sections is None or isinstance(raw_sections, (str, bytes, Mapping)):
        raise SectionFormatError("Diff sections must be a list")
    return [normalize_diff_section(raw, index) for index, raw in enumerate(raw_sections)]
