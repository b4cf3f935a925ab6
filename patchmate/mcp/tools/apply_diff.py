"""
apply_diff MCP tool.

Applies one or more search/replace sections to a file. Line numbers are hints:
each section's search text is located in the current file first, so stale
line numbers and small whitespace drift are tolerated. Every change goes
through the approval handler before anything is written.

Failures come back as structured error dicts carrying the error kind and,
for validation failures, the searched text and the closest content found, so
the model can correct its next attempt.
"""

import os
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from patchmate.diff_utils.core.config import ApplyConfig
from patchmate.diff_utils.core.exceptions import ApplyDiffError, ErrorLevel, SectionFormatError
from patchmate.diff_utils.file_ops.storage import FileStorage, LocalFileStorage
from patchmate.diff_utils.pipeline.apply_pipeline import ApplyDiffOrchestrator
from patchmate.diff_utils.pipeline.approval import ApprovalHandler, get_approval_handler
from patchmate.mcp.tools.base import BaseMCPTool
from patchmate.utils.logging_utils import logger


class DiffSectionInput(BaseModel):
    """One search/replace section."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    start_line: int = Field(
        ...,
        alias="startLine",
        description="0-based line where the search text is expected to start.",
    )
    end_line: int = Field(
        ...,
        alias="endLine",
        description="0-based inclusive end line, or -1 to replace from startLine to the end of the file.",
    )
    search: Optional[str] = Field(
        None,
        description="Text currently in the file. May be empty when endLine is -1.",
    )
    replace: Optional[str] = Field(
        None,
        description="Text to put in place of the search text.",
    )
    original_content: Optional[str] = Field(
        None,
        alias="originalContent",
        description="Deprecated name for 'search'.",
    )
    new_content: Optional[str] = Field(
        None,
        alias="newContent",
        description="Deprecated name for 'replace'.",
    )
    description: Optional[str] = None


class ApplyDiffInput(BaseModel):
    """Input schema for apply_diff."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    file_path: str = Field(
        ...,
        alias="filePath",
        description="Relative path from the project root to the file to edit.",
    )
    sections: List[DiffSectionInput] = Field(
        ...,
        alias="diffs",
        min_length=1,
        description="Sections to apply. They are validated together and written in one step.",
    )
    description: Optional[str] = Field(
        None,
        description="Summary of the change, shown when asking for approval.",
    )
    partial_success: bool = Field(
        False,
        alias="partialSuccess",
        description="Apply the sections that can be applied even if others conflict.",
    )
    create_if_missing: bool = Field(
        False,
        alias="createIfMissing",
        description="Create the file first when it does not exist.",
    )
    error_detail: int = Field(
        int(ErrorLevel.DETAILED),
        alias="errorDetail",
        ge=1,
        le=3,
        description="Error verbosity: 1 reason only, 2 adds the closest match found, 3 adds every strategy tried.",
    )


def _error(kind: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"error": True, "kind": kind, "message": message, "details": details or {}}


class ApplyDiffTool(BaseMCPTool):
    """Apply search/replace sections to a project file."""

    name: str = "apply_diff"
    description: str = (
        "Apply one or more search/replace sections to a file relative to the "
        "project root.  Each section gives startLine/endLine hints plus the "
        "'search' text currently in the file and its 'replace' text.  The "
        "search text is located even when line numbers are stale or "
        "whitespace differs; ambiguous or fuzzy matches are reported as "
        "warnings.  Use endLine -1 to replace everything from startLine to "
        "the end of the file.\n\n"
        "All sections are applied together or not at all, unless "
        "partialSuccess is true.  If a section cannot be located the error "
        "shows the closest content found so you can adjust."
    )
    InputSchema = ApplyDiffInput

    def __init__(self,
                 storage: Optional[FileStorage] = None,
                 approval: Optional[ApprovalHandler] = None,
                 config: Optional[ApplyConfig] = None):
        self.storage = storage
        self.approval = approval
        self.config = config

    def _orchestrator(self, workspace_path: Optional[str]) -> ApplyDiffOrchestrator:
        config = self.config or ApplyConfig.from_env()
        storage = self.storage or LocalFileStorage(workspace_path or os.getcwd())
        approval = self.approval or get_approval_handler(config.auto_approve)
        return ApplyDiffOrchestrator(storage, approval, config)

    async def execute(self, **kwargs) -> Dict[str, Any]:
        workspace_path = kwargs.pop("_workspace_path", None)

        try:
            args = ApplyDiffInput.model_validate(kwargs)
        except ValidationError as e:
            errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
            return _error("invalid_arguments", "Invalid apply_diff arguments", {"errors": errors})

        raw_sections = [s.model_dump(by_alias=True, exclude_none=True) for s in args.sections]
        level = ErrorLevel(args.error_detail)

        try:
            summary = await self._orchestrator(workspace_path).apply(
                args.file_path,
                raw_sections,
                description=args.description,
                partial_success=args.partial_success,
                create_if_missing=args.create_if_missing,
            )
        except SectionFormatError as e:
            return _error("invalid_arguments", e.message, e.details)
        except ApplyDiffError as e:
            logger.info(f"apply_diff on {args.file_path} failed: {e.kind.value}")
            return _error(e.kind.value, e.format(level), e.details)

        return {"success": True, "message": summary.format(), "summary": summary.to_dict()}
