"""
Tests for patchmate.mcp.tools.apply_diff, the apply_diff MCP tool.

Covers:
  - Argument validation and alias handling (camelCase, snake_case, deprecated names)
  - Structured error dicts for each failure kind
  - Error detail levels
  - Workspace-rooted local storage when no storage is injected
"""

import pytest

from patchmate.diff_utils.core.config import ApplyConfig
from patchmate.diff_utils.pipeline.approval import AutoApprovalHandler
from patchmate.mcp.tools import ApplyDiffTool

RETURN_TWO = {"startLine": 1, "endLine": 1, "search": "  return 1;", "replace": "  return 2;"}
MISSING = {"startLine": 0, "endLine": 0, "search": "nothing like this is in the file", "replace": "x"}


@pytest.fixture
def tool(memory_storage, approver, config):
    return ApplyDiffTool(storage=memory_storage, approval=approver, config=config)


class TestToolMetadata:

    def test_name_and_schema(self, tool):
        assert tool.name == "apply_diff"
        schema = tool.input_schema()
        assert "filePath" in schema["properties"]
        assert "diffs" in schema["properties"]
        assert "filePath" in schema["required"]


class TestApplyDiffTool:

    async def test_success(self, tool, memory_storage):
        result = await tool.execute(filePath="src/app.js", diffs=[RETURN_TWO])

        assert result["success"] is True
        assert result["message"].startswith("Applied 1 diff section(s) to src/app.js")
        assert result["summary"]["sections_applied"] == 1
        assert result["summary"]["confidence_profile"]["0"]["strategy"] == "exact"
        assert memory_storage.files["src/app.js"] == "function f() {\n  return 2;\n}\n"

    async def test_snake_case_arguments(self, tool, memory_storage):
        section = {"start_line": 1, "end_line": 1, "search": "  return 1;", "replace": "  return 5;"}
        result = await tool.execute(file_path="src/app.js", sections=[section])
        assert result["success"] is True
        assert "return 5;" in memory_storage.files["src/app.js"]

    async def test_deprecated_field_names(self, tool, memory_storage):
        section = {"startLine": 1, "endLine": 1, "originalContent": "  return 1;", "newContent": "  return 7;"}
        result = await tool.execute(filePath="src/app.js", diffs=[section])
        assert result["success"] is True
        assert "return 7;" in memory_storage.files["src/app.js"]

    async def test_partial_success(self, tool):
        result = await tool.execute(filePath="src/app.js", diffs=[RETURN_TWO, MISSING], partialSuccess=True)
        assert result["success"] is True
        assert result["summary"]["partial"] is True
        assert result["summary"]["skipped_indices"] == [1]


class TestToolErrors:

    async def test_missing_arguments(self, tool):
        result = await tool.execute(filePath="src/app.js")
        assert result["error"] is True
        assert result["kind"] == "invalid_arguments"
        assert result["details"]["errors"]

    async def test_empty_section_list(self, tool):
        result = await tool.execute(filePath="src/app.js", diffs=[])
        assert result["kind"] == "invalid_arguments"

    async def test_malformed_section(self, tool, memory_storage):
        result = await tool.execute(filePath="src/app.js", diffs=[{"startLine": 3, "endLine": 1,
                                                                    "search": "a", "replace": "b"}])
        assert result["kind"] == "invalid_arguments"
        assert result["details"]["section_index"] == 0
        assert memory_storage.writes == 0

    async def test_missing_file(self, tool):
        result = await tool.execute(filePath="src/nope.js", diffs=[RETURN_TWO])
        assert result["kind"] == "file_not_found"
        assert result["details"]["file_path"] == "src/nope.js"

    async def test_validation_failure_detail_levels(self, tool):
        simple = await tool.execute(filePath="src/app.js", diffs=[MISSING], errorDetail=1)
        detailed = await tool.execute(filePath="src/app.js", diffs=[MISSING])
        full = await tool.execute(filePath="src/app.js", diffs=[MISSING], errorDetail=3)

        for result in (simple, detailed, full):
            assert result["kind"] == "validation_failed"
            assert result["details"]["expected"] == MISSING["search"]
        assert "Expected (search content):" not in simple["message"]
        assert "Expected (search content):" in detailed["message"]
        assert "Validation attempts:" not in detailed["message"]
        assert "Validation attempts:" in full["message"]

    async def test_rejected(self, memory_storage, config):
        tool = ApplyDiffTool(storage=memory_storage, approval=AutoApprovalHandler(approve=False), config=config)
        result = await tool.execute(filePath="src/app.js", diffs=[RETURN_TWO])
        assert result["kind"] == "rejected"
        assert memory_storage.writes == 0


@pytest.mark.filesystem
class TestWorkspaceStorage:

    async def test_uses_workspace_path(self, tmp_path):
        (tmp_path / "main.py").write_text("x = 1\n")
        tool = ApplyDiffTool(config=ApplyConfig(auto_approve=True))
        result = await tool.execute(
            _workspace_path=str(tmp_path),
            filePath="main.py",
            diffs=[{"startLine": 0, "endLine": 0, "search": "x = 1", "replace": "x = 2"}],
        )
        assert result["success"] is True
        assert (tmp_path / "main.py").read_text() == "x = 2\n"

    async def test_default_config_rejects_without_handler(self, tmp_path):
        (tmp_path / "main.py").write_text("x = 1\n")
        tool = ApplyDiffTool(config=ApplyConfig())
        result = await tool.execute(
            _workspace_path=str(tmp_path),
            filePath="main.py",
            diffs=[{"startLine": 0, "endLine": 0, "search": "x = 1", "replace": "x = 2"}],
        )
        assert result["kind"] == "rejected"
        assert (tmp_path / "main.py").read_text() == "x = 1\n"
