"""
Tests for line ending detection and line splitting.
"""

import unittest

from patchmate.diff_utils.application.newline_handler import (
    detect_line_endings,
    join_lines,
    normalize_line_endings,
    split_lines,
)


class TestDetectLineEndings(unittest.TestCase):

    def test_dominant_ending(self):
        self.assertEqual(detect_line_endings("a\nb\nc\n"), ('\n', True))
        self.assertEqual(detect_line_endings("a\r\nb\r\nc"), ('\r\n', False))
        self.assertEqual(detect_line_endings("a\rb\rc\r"), ('\r', True))

    def test_mixed_prefers_crlf_on_tie(self):
        self.assertEqual(detect_line_endings("a\r\nb\nc")[0], '\r\n')

    def test_empty_content(self):
        self.assertEqual(detect_line_endings(""), ('\n', False))


class TestSplitLines(unittest.TestCase):

    def test_mixed_endings_kept_per_line(self):
        self.assertEqual(split_lines("a\r\nb\nc"), (["a", "b", "c"], ["\r\n", "\n", ""]))

    def test_empty_content_has_no_lines(self):
        self.assertEqual(split_lines(""), ([], []))

    def test_final_newline_does_not_add_line(self):
        self.assertEqual(split_lines("a\n"), (["a"], ["\n"]))

    def test_blank_lines(self):
        self.assertEqual(split_lines("\n\n"), (["", ""], ["\n", "\n"]))

    def test_old_mac_ending(self):
        self.assertEqual(split_lines("a\r"), (["a"], ["\r"]))

    def test_join_restores_content(self):
        for content in ("a\r\nb\nc", "x\n\n\ny\r\n", "single", "\r\n"):
            self.assertEqual(join_lines(*split_lines(content)), content)


class TestNormalizeLineEndings(unittest.TestCase):

    def test_to_lf(self):
        self.assertEqual(normalize_line_endings("a\r\nb\rc\n"), "a\nb\nc\n")

    def test_to_crlf(self):
        self.assertEqual(normalize_line_endings("a\nb\r\n", '\r\n'), "a\r\nb\r\n")


if __name__ == "__main__":
    unittest.main()
