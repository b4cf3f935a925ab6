"""
Tests for patchmate.diff_utils.pipeline.apply_pipeline.

Covers:
  - The happy path and the stages it passes through
  - Search and replace text ending in a newline, and re-indented nested blocks
  - Rejection, approval timeout and cancellation leave the file untouched
  - Validation failures, with and without partial success
  - Missing files, file creation and storage failures
  - Line endings preserved end to end on the local filesystem
"""

import asyncio
import sys

import pytest

from patchmate.diff_utils.core.config import ApplyConfig
from patchmate.diff_utils.core.exceptions import (
    ApplyErrorKind,
    DiffFileNotFoundError,
    DiffReadError,
    DiffRejectedError,
    DiffValidationError,
    DiffWriteError,
    SectionFormatError,
)
from patchmate.diff_utils.core.models import ApplyStage, DiffSection
from patchmate.diff_utils.file_ops.storage import InMemoryFileStorage
from patchmate.diff_utils.pipeline.apply_pipeline import ApplyDiffOrchestrator, apply_diff
from patchmate.diff_utils.pipeline.approval import AutoApprovalHandler, CallbackApprovalHandler

ORIGINAL = "function f() {\n  return 1;\n}\n"

RETURN_TWO = {"startLine": 1, "endLine": 1, "search": "  return 1;", "replace": "  return 2;"}
MISSING = {"startLine": 0, "endLine": 0, "search": "nothing like this is in the file", "replace": "x"}


class FailingWriteStorage(InMemoryFileStorage):
    async def write_text(self, path, content):
        raise OSError("read-only file system")


class FailingReadStorage(InMemoryFileStorage):
    async def read_text(self, path):
        raise OSError("permission denied")


@pytest.fixture
def orchestrator(memory_storage, approver, config):
    return ApplyDiffOrchestrator(memory_storage, approver, config)


# ── Happy path ─────────────────────────────────────────────────────

class TestCommit:

    async def test_applies_section(self, orchestrator, memory_storage):
        summary = await orchestrator.apply("src/app.js", [RETURN_TWO])

        assert memory_storage.files["src/app.js"] == "function f() {\n  return 2;\n}\n"
        assert summary.sections_applied == 1
        assert summary.sections_skipped == 0
        assert not summary.partial
        assert summary.confidence_profile == {0: ("exact", 1.0)}
        assert summary.warnings == []

    async def test_stage_history(self, orchestrator):
        await orchestrator.apply("src/app.js", [RETURN_TWO])
        assert orchestrator.stage_history == [
            ApplyStage.VALIDATING,
            ApplyStage.BUILDING_CONTENT,
            ApplyStage.REQUESTING_APPROVAL,
            ApplyStage.COMMITTING,
            ApplyStage.COMMITTED,
        ]
        assert orchestrator.stage.is_terminal

    async def test_accepts_diff_section_records(self, orchestrator, memory_storage):
        await orchestrator.apply("src/app.js", [DiffSection(1, 1, "  return 1;", "  return 3;")])
        assert "return 3;" in memory_storage.files["src/app.js"]

    async def test_stale_line_numbers(self, orchestrator, memory_storage):
        stale = dict(RETURN_TWO, startLine=0, endLine=0)
        await orchestrator.apply("src/app.js", [stale])
        assert memory_storage.files["src/app.js"] == "function f() {\n  return 2;\n}\n"

    async def test_search_with_trailing_newline_keeps_closing_brace(self, orchestrator, memory_storage):
        summary = await orchestrator.apply("src/app.js", [
            {"startLine": 1, "endLine": 1, "search": "  return 1;\n", "replace": "  return 2;\n"},
        ])
        assert memory_storage.files["src/app.js"] == "function f() {\n  return 2;\n}\n"
        assert summary.confidence_profile == {0: ("exact", 1.0)}
        assert summary.warnings == []

    async def test_dedented_nested_block_is_reindented(self, config, approver):
        storage = InMemoryFileStorage({"a.py": "class A:\n    def f(self):\n        if x:\n            y()\n"})
        orchestrator = ApplyDiffOrchestrator(storage, approver, config)
        summary = await orchestrator.apply("a.py", [
            {"startLine": 2, "endLine": 3, "search": "if x:\n    y()", "replace": "if x:\n    z()"},
        ])
        assert storage.files["a.py"] == "class A:\n    def f(self):\n        if x:\n            z()\n"
        assert summary.confidence_profile == {0: ("normalized", 0.9)}

    async def test_preview_shows_change(self, memory_storage, config):
        previews = []

        def callback(preview):
            previews.append(preview)
            return True

        orchestrator = ApplyDiffOrchestrator(memory_storage, CallbackApprovalHandler(callback), config)
        await orchestrator.apply("src/app.js", [RETURN_TWO], description="Bump return value")

        preview = previews[0]
        assert preview.description == "Bump return value"
        assert preview.original == ORIGINAL
        assert "+  return 2;" in preview.unified_diff()
        assert [m.section_index for m in preview.matches] == [0]

    async def test_structural_warning_reaches_summary(self, orchestrator, memory_storage):
        summary = await orchestrator.apply("src/app.js", [
            {"startLine": 2, "endLine": 2, "search": "}", "replace": ""},
        ])
        assert memory_storage.files["src/app.js"] == "function f() {\n  return 1;\n"
        assert any("Unbalanced braces" in w for w in summary.warnings)

    async def test_multiple_sections_applied_together(self, config, approver):
        storage = InMemoryFileStorage({"notes.txt": "one\ntwo\nthree\nfour\n"})
        orchestrator = ApplyDiffOrchestrator(storage, approver, config)
        summary = await orchestrator.apply("notes.txt", [
            {"startLine": 3, "endLine": 3, "search": "four", "replace": "FOUR"},
            {"startLine": 0, "endLine": 1, "search": "one\ntwo", "replace": "ONE"},
        ])
        assert storage.files["notes.txt"] == "ONE\nthree\nFOUR\n"
        assert summary.sections_applied == 2
        assert storage.writes == 1


# ── Approval ───────────────────────────────────────────────────────

class TestApproval:

    async def test_rejection_writes_nothing(self, memory_storage, config):
        orchestrator = ApplyDiffOrchestrator(memory_storage, AutoApprovalHandler(approve=False), config)
        with pytest.raises(DiffRejectedError) as exc_info:
            await orchestrator.apply("src/app.js", [RETURN_TWO])

        assert exc_info.value.kind == ApplyErrorKind.REJECTED
        assert memory_storage.files["src/app.js"] == ORIGINAL
        assert memory_storage.writes == 0
        assert orchestrator.stage == ApplyStage.REJECTED

    async def test_timeout_counts_as_rejection(self, memory_storage):
        async def slow(preview):
            await asyncio.sleep(5)
            return True

        orchestrator = ApplyDiffOrchestrator(
            memory_storage, CallbackApprovalHandler(slow), ApplyConfig(approval_timeout=0.01))
        with pytest.raises(DiffRejectedError) as exc_info:
            await orchestrator.apply("src/app.js", [RETURN_TWO])

        assert exc_info.value.details["reason"] == "Approval timed out"
        assert memory_storage.writes == 0

    async def test_cancelled_approval_counts_as_rejection(self, memory_storage):
        def cancel(preview):
            raise asyncio.CancelledError()

        orchestrator = ApplyDiffOrchestrator(
            memory_storage, CallbackApprovalHandler(cancel), ApplyConfig(approval_timeout=0))
        with pytest.raises(DiffRejectedError) as exc_info:
            await orchestrator.apply("src/app.js", [RETURN_TWO])

        assert exc_info.value.details["reason"] == "Approval was cancelled"
        assert memory_storage.files["src/app.js"] == ORIGINAL

    @pytest.mark.skipif(sys.version_info < (3, 11), reason="Task.cancelling() needs Python 3.11")
    async def test_cancelling_the_apply_propagates(self, memory_storage):
        asked = asyncio.Event()

        async def never_answers(preview):
            asked.set()
            await asyncio.Event().wait()

        orchestrator = ApplyDiffOrchestrator(
            memory_storage, CallbackApprovalHandler(never_answers), ApplyConfig(approval_timeout=0))
        task = asyncio.create_task(orchestrator.apply("src/app.js", [RETURN_TWO]))
        await asked.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert memory_storage.writes == 0
        assert orchestrator.stage == ApplyStage.REJECTED


# ── Validation failures ────────────────────────────────────────────

class TestValidationFailures:

    async def test_not_found_fails_whole_apply(self, orchestrator, memory_storage):
        with pytest.raises(DiffValidationError) as exc_info:
            await orchestrator.apply("src/app.js", [RETURN_TWO, MISSING])

        error = exc_info.value
        assert error.kind == ApplyErrorKind.VALIDATION_FAILED
        assert error.details["expected"] == MISSING["search"]
        assert error.details["section_index"] == 1
        assert memory_storage.writes == 0
        assert orchestrator.stage_history == [ApplyStage.VALIDATING, ApplyStage.FAILED]

    async def test_partial_success_applies_the_rest(self, orchestrator, memory_storage):
        summary = await orchestrator.apply("src/app.js", [RETURN_TWO, MISSING], partial_success=True)

        assert memory_storage.files["src/app.js"] == "function f() {\n  return 2;\n}\n"
        assert summary.partial
        assert summary.skipped_indices == [1]
        assert summary.warnings[0] == ("Partial success: 1 of 2 diffs will be applied. "
                                       "1 diffs excluded due to conflicts.")

    async def test_partial_success_with_nothing_left(self, orchestrator, memory_storage):
        with pytest.raises(DiffValidationError, match="No diff sections could be applied"):
            await orchestrator.apply("src/app.js", [MISSING], partial_success=True)
        assert memory_storage.writes == 0

    async def test_overlap_fails(self, orchestrator):
        with pytest.raises(DiffValidationError) as exc_info:
            await orchestrator.apply("src/app.js", [
                {"startLine": 0, "endLine": 1, "search": "function f() {\n  return 1;", "replace": "a"},
                {"startLine": 1, "endLine": 2, "search": "  return 1;\n}", "replace": "b"},
            ])
        assert exc_info.value.report.conflicting_indices() == [0, 1]

    async def test_malformed_section(self, orchestrator):
        with pytest.raises(SectionFormatError):
            await orchestrator.apply("src/app.js", [{"startLine": 0, "search": "x", "replace": "y"}])
        assert orchestrator.stage == ApplyStage.FAILED


# ── Files and storage ──────────────────────────────────────────────

class TestFilesAndStorage:

    async def test_missing_file(self, orchestrator):
        with pytest.raises(DiffFileNotFoundError):
            await orchestrator.apply("src/missing.js", [RETURN_TWO])
        assert orchestrator.stage == ApplyStage.FAILED

    async def test_full_file_section_creates_file(self, orchestrator, memory_storage):
        await orchestrator.apply("src/new.py", [
            {"startLine": 0, "endLine": -1, "search": "", "replace": "print('hi')\n"},
        ])
        assert memory_storage.files["src/new.py"] == "print('hi')\n"

    async def test_create_if_missing(self, orchestrator, memory_storage):
        await orchestrator.apply("README.md", [
            {"startLine": 0, "endLine": 0, "search": "", "replace": "# Title"},
        ], create_if_missing=True)
        assert memory_storage.files["README.md"] == "# Title"

    async def test_read_failure(self, approver, config):
        storage = FailingReadStorage({"a.txt": "a\n"})
        orchestrator = ApplyDiffOrchestrator(storage, approver, config)
        with pytest.raises(DiffReadError) as exc_info:
            await orchestrator.apply("a.txt", [{"startLine": 0, "endLine": 0, "search": "a", "replace": "b"}])
        assert exc_info.value.kind == ApplyErrorKind.READ_FAILED

    async def test_write_failure(self, approver, config):
        storage = FailingWriteStorage({"src/app.js": ORIGINAL})
        orchestrator = ApplyDiffOrchestrator(storage, approver, config)
        with pytest.raises(DiffWriteError) as exc_info:
            await orchestrator.apply("src/app.js", [RETURN_TWO])

        assert "read-only file system" in exc_info.value.message
        assert orchestrator.stage == ApplyStage.WRITE_FAILED
        assert storage.files["src/app.js"] == ORIGINAL


@pytest.mark.filesystem
class TestLocalApply:

    async def test_crlf_file_keeps_crlf(self, tmp_path, config):
        (tmp_path / "win.txt").write_bytes(b"a\r\nb\r\nc\r\n")
        await apply_diff("win.txt", [{"startLine": 1, "endLine": 1, "search": "b", "replace": "B\nB2"}],
                         root=str(tmp_path), auto_approve=True, config=config)
        assert (tmp_path / "win.txt").read_bytes() == b"a\r\nB\r\nB2\r\nc\r\n"

    async def test_missing_final_newline_kept(self, tmp_path, config):
        (tmp_path / "f.py").write_bytes(b"x = 1\ny = 2")
        await apply_diff("f.py", [{"startLine": 0, "endLine": 0, "search": "x = 1", "replace": "x = 10"}],
                         root=str(tmp_path), auto_approve=True, config=config)
        assert (tmp_path / "f.py").read_bytes() == b"x = 10\ny = 2"

    async def test_auto_approve_off_rejects(self, tmp_path, config):
        (tmp_path / "f.py").write_text("x = 1\n")
        with pytest.raises(DiffRejectedError):
            await apply_diff("f.py", [{"startLine": 0, "endLine": 0, "search": "x = 1", "replace": "x = 2"}],
                             root=str(tmp_path), auto_approve=False, config=config)
        assert (tmp_path / "f.py").read_text() == "x = 1\n"
