"""
Structural sanity checks comparing a file before and after an edit.

The checks count delimiters outside strings and comments. They never block
an edit; their warnings are shown in the approval preview.
"""

import json
import os
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from patchmate.utils.logging_utils import logger

HASH_COMMENT_EXTENSIONS = {'py', 'sh', 'bash', 'rb', 'pl', 'yaml', 'yml', 'toml', 'r'}

DELIMITERS: Dict[str, Tuple[str, str]] = {
    'braces': ('{', '}'),
    'parentheses': ('(', ')'),
    'brackets': ('[', ']'),
}


@dataclass
class DelimiterCounts:
    """Open and close counts of structural delimiters."""
    opened: Dict[str, int] = field(default_factory=lambda: {name: 0 for name in DELIMITERS})
    closed: Dict[str, int] = field(default_factory=lambda: {name: 0 for name in DELIMITERS})
    block_comments_opened: int = 0
    block_comments_closed: int = 0

    def balance(self, name: str) -> int:
        return self.opened[name] - self.closed[name]

    @property
    def unclosed_block_comments(self) -> int:
        return self.block_comments_opened - self.block_comments_closed


@dataclass(frozen=True)
class StructuralWarning:
    kind: str
    severity: str  # 'high', 'medium' or 'low'
    message: str
    details: str = ''

    def format(self) -> str:
        text = f"[{self.severity}] {self.message}"
        if self.details:
            text += f" ({self.details})"
        return text


@dataclass
class StructuralValidationResult:
    """Outcome of comparing the structure of two versions of a file."""
    warnings: List[StructuralWarning]
    before: DelimiterCounts
    after: DelimiterCounts
    analysis: str

    @property
    def is_valid(self) -> bool:
        return not any(w.severity == 'high' for w in self.warnings)

    def messages(self) -> List[str]:
        return [w.format() for w in self.warnings]


def _extension(file_path: str) -> str:
    return os.path.splitext(file_path)[1].lstrip('.').lower()


class StructuralValidator:
    """Detect delimiter imbalances introduced by an edit."""

    def count_elements(self, content: str, hash_comments: bool = False) -> DelimiterCounts:
        """
        Count delimiters in content, skipping string literals and comments.

        Args:
            content: The text to scan
            hash_comments: Treat '#' as a line comment instead of '//'
        """
        counts = DelimiterCounts()
        openers = {pair[0]: name for name, pair in DELIMITERS.items()}
        closers = {pair[1]: name for name, pair in DELIMITERS.items()}

        quote = None
        in_block_comment = False
        in_line_comment = False
        i = 0
        length = len(content)

        while i < length:
            char = content[i]
            next_char = content[i + 1] if i + 1 < length else ''

            if quote is not None:
                if char == '\\':
                    i += 2
                    continue
                if char == quote:
                    quote = None
                i += 1
                continue

            if in_block_comment:
                if char == '*' and next_char == '/':
                    counts.block_comments_closed += 1
                    in_block_comment = False
                    i += 2
                    continue
                i += 1
                continue

            if in_line_comment:
                if char == '\n':
                    in_line_comment = False
                i += 1
                continue

            if char == '/' and next_char == '*':
                counts.block_comments_opened += 1
                in_block_comment = True
                i += 2
                continue
            if (hash_comments and char == '#') or (not hash_comments and char == '/' and next_char == '/'):
                in_line_comment = True
                i += 1
                continue

            if char in ('"', "'", '`'):
                quote = char
            elif char in openers:
                counts.opened[openers[char]] += 1
            elif char in closers:
                counts.closed[closers[char]] += 1
            i += 1

        return counts

    def validate_structure(self, before: str, after: str, file_path: str) -> StructuralValidationResult:
        """
        Compare the structure of a file before and after an edit.

        Only problems the edit introduced are reported: a delimiter whose
        balance changed, a block comment left open, or a JSON file that
        parsed before and no longer does.

        Args:
            before: Original file content
            after: Modified file content
            file_path: Used to pick language-specific checks

        Returns:
            StructuralValidationResult with warnings and a short analysis
        """
        extension = _extension(file_path)
        hash_comments = extension in HASH_COMMENT_EXTENSIONS
        counts_before = self.count_elements(before, hash_comments)
        counts_after = self.count_elements(after, hash_comments)
        warnings: List[StructuralWarning] = []

        for name in DELIMITERS:
            balance_before = counts_before.balance(name)
            balance_after = counts_after.balance(name)
            if balance_after != balance_before and balance_after != 0:
                warnings.append(StructuralWarning(
                    kind=f"unbalanced_{name}",
                    severity='medium',
                    message=f"Unbalanced {name}: {counts_after.opened[name]} open, "
                            f"{counts_after.closed[name]} close",
                    details=f"Change from before: {balance_before} -> {balance_after}",
                ))

        if counts_after.unclosed_block_comments > max(counts_before.unclosed_block_comments, 0):
            warnings.append(StructuralWarning(
                kind='unclosed_comment',
                severity='medium',
                message='Unclosed block comment detected',
                details=f"{counts_after.block_comments_opened} /* found but only "
                        f"{counts_after.block_comments_closed} */",
            ))

        if extension == 'json':
            warnings.extend(self._validate_json(before, after))

        result = StructuralValidationResult(
            warnings=warnings,
            before=counts_before,
            after=counts_after,
            analysis=self._generate_analysis(counts_before, counts_after),
        )
        if warnings:
            logger.warning(f"Structural check for {file_path}: {result.analysis}")
        return result

    @staticmethod
    def _validate_json(before: str, after: str) -> List[StructuralWarning]:
        try:
            json.loads(before)
        except ValueError:
            # Already invalid, nothing introduced by this edit
            return []
        try:
            json.loads(after)
        except ValueError as e:
            return [StructuralWarning(
                kind='json_invalid',
                severity='high',
                message='Invalid JSON structure',
                details=str(e),
            )]
        return []

    @staticmethod
    def _generate_analysis(before: DelimiterCounts, after: DelimiterCounts) -> str:
        changes = []
        for name in DELIMITERS:
            delta = after.balance(name) - before.balance(name)
            if delta:
                changes.append(f"{name.capitalize()} balance changed by {delta:+d}")
        if not changes:
            return 'No structural changes detected'
        return 'Structural changes: ' + ', '.join(changes)
