"""
The apply pipeline: validate, build, approve, commit.

Each invocation walks the stages below and stops in exactly one terminal
stage. Nothing is written unless the approval handler accepts the preview,
and the write replaces the whole file at once.

    VALIDATING -> (FAILED | BUILDING_CONTENT) -> REQUESTING_APPROVAL
               -> (REJECTED | COMMITTING) -> (COMMITTED | WRITE_FAILED)
"""

import asyncio
from typing import Any, Iterable, List, Mapping, Optional, Union

from patchmate.utils.logging_utils import logger
from ..application.newline_handler import split_lines
from ..application.section_merger import build_modified_content
from ..core.config import ApplyConfig
from ..core.exceptions import (
    DiffFileNotFoundError,
    DiffReadError,
    DiffRejectedError,
    DiffValidationError,
    DiffWriteError,
)
from ..core.models import (
    ApplyStage,
    ApplySummary,
    ApprovalPreview,
    ApprovedEdit,
    DiffSection,
)
from ..core.text_normalization import MatchingOptions
from ..file_ops.storage import FileStorage, LocalFileStorage, StorageError, StorageNotFoundError
from ..parsing.section_parser import normalize_diff_sections
from ..validation.structural_validator import StructuralValidator
from ..validation.validators import resolve_partial, validate_diff_sections
from .approval import ApprovalHandler, get_approval_handler

RawSection = Union[DiffSection, Mapping[str, Any]]


def _is_cancelling() -> bool:
    """Whether the running task itself has a pending cancellation request."""
    task = asyncio.current_task()
    cancelling = getattr(task, "cancelling", None)  # Python 3.11+
    return bool(cancelling and cancelling())


class ApplyDiffOrchestrator:
    """Applies diff sections to one file through injected storage and approval."""

    def __init__(self,
                 storage: FileStorage,
                 approval: ApprovalHandler,
                 config: Optional[ApplyConfig] = None,
                 options: Optional[MatchingOptions] = None):
        self.storage = storage
        self.approval = approval
        self.config = config or ApplyConfig.from_env()
        self.options = options
        self.structural_validator = StructuralValidator()
        self.stage: Optional[ApplyStage] = None
        self.stage_history: List[ApplyStage] = []

    def _enter(self, stage: ApplyStage, file_path: str) -> None:
        self.stage = stage
        self.stage_history.append(stage)
        logger.debug(f"[{file_path}] stage -> {stage.value}")

    async def apply(self,
                    file_path: str,
                    sections: Iterable[RawSection],
                    description: Optional[str] = None,
                    partial_success: bool = False,
                    create_if_missing: bool = False) -> ApplySummary:
        """
        Apply sections to file_path.

        Args:
            file_path: Path understood by the storage backend
            sections: DiffSection records or raw section dicts
            description: Shown to the approval handler
            partial_success: Apply the non-conflicting sections when some conflict
            create_if_missing: Create the file when it does not exist

        Returns:
            ApplySummary describing what was written

        Raises:
            SectionFormatError: If a raw section is malformed
            DiffFileNotFoundError, DiffReadError, DiffValidationError,
            DiffRejectedError, DiffWriteError: On the matching failure
        """
        self.stage_history = []
        self._enter(ApplyStage.VALIDATING, file_path)

        try:
            sections = normalize_diff_sections(sections)
        except Exception:
            self._enter(ApplyStage.FAILED, file_path)
            raise

        content = await self._read_snapshot(file_path, sections, create_if_missing)
        lines, endings = split_lines(content)

        report = validate_diff_sections(lines, sections, self.options, config=self.config)
        warnings = list(report.warnings)
        matches = list(report.matches)
        skipped: List[int] = []

        if not report.is_valid:
            if not partial_success:
                self._enter(ApplyStage.FAILED, file_path)
                logger.warning(f"Validation failed for {file_path}: {len(report.conflicts)} conflict(s)")
                raise DiffValidationError(file_path, report)

            matches, skipped = resolve_partial(report)
            if not matches:
                self._enter(ApplyStage.FAILED, file_path)
                raise DiffValidationError(
                    file_path, report, f"No diff sections could be applied to {file_path}")
            warnings.insert(0, f"Partial success: {len(matches)} of {len(sections)} diffs will be applied. "
                               f"{len(skipped)} diffs excluded due to conflicts.")
            logger.warning(f"Partial apply to {file_path}: skipping sections {skipped}")

        self._enter(ApplyStage.BUILDING_CONTENT, file_path)
        edits = [ApprovedEdit(match=m, new_content=sections[m.section_index].replace) for m in matches]
        modified = build_modified_content(lines, edits, endings,
                                          adapt_indentation=self.config.adapt_indentation)

        structural = self.structural_validator.validate_structure(content, modified, file_path)
        warnings.extend(structural.messages())

        self._enter(ApplyStage.REQUESTING_APPROVAL, file_path)
        preview = ApprovalPreview(
            file_path=file_path,
            original=content,
            modified=modified,
            description=description or f"Apply {len(edits)} diff section(s) to {file_path}",
            warnings=tuple(warnings),
            matches=tuple(matches),
        )
        approved, reason = await self._request_approval(preview)
        if not approved:
            self._enter(ApplyStage.REJECTED, file_path)
            logger.info(f"Changes to {file_path} not applied: {reason}")
            raise DiffRejectedError(file_path, reason)

        self._enter(ApplyStage.COMMITTING, file_path)
        try:
            await self.storage.write_text(file_path, modified)
        except (OSError, StorageError) as e:
            self._enter(ApplyStage.WRITE_FAILED, file_path)
            logger.error(f"Failed to write {file_path}: {e}")
            raise DiffWriteError(file_path, e) from e

        self._enter(ApplyStage.COMMITTED, file_path)
        summary = ApplySummary(
            file_path=file_path,
            sections_applied=len(matches),
            sections_skipped=len(skipped),
            skipped_indices=skipped,
            warnings=warnings,
            confidence_profile={m.section_index: (m.strategy.value, m.confidence) for m in matches},
        )
        logger.info(f"Applied {summary.sections_applied} diff section(s) to {file_path}"
                    f" (min confidence {summary.min_confidence:.2f})")
        return summary

    async def _read_snapshot(self, file_path: str, sections: List[DiffSection], create_if_missing: bool) -> str:
        try:
            exists = await self.storage.exists(file_path)
            if not exists:
                if not (create_if_missing or any(s.is_full_file_replacement for s in sections)):
                    self._enter(ApplyStage.FAILED, file_path)
                    raise DiffFileNotFoundError(file_path)
                logger.info(f"Creating {file_path} before applying sections")
                await self.storage.create_empty(file_path)
            return await self.storage.read_text(file_path)
        except StorageNotFoundError:
            self._enter(ApplyStage.FAILED, file_path)
            raise DiffFileNotFoundError(file_path)
        except (OSError, StorageError) as e:
            self._enter(ApplyStage.FAILED, file_path)
            raise DiffReadError(file_path, e) from e

    async def _request_approval(self, preview: ApprovalPreview):
        """Return (approved, reason); silence and cancellation count as rejection."""
        timeout = self.config.approval_timeout
        try:
            if timeout is None or timeout <= 0:
                approved = await self.approval.request_approval(preview)
            else:
                approved = await asyncio.wait_for(self.approval.request_approval(preview), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Approval for {preview.file_path} timed out after {timeout}s")
            return False, "Approval timed out"
        except asyncio.CancelledError:
            # Only a cancellation raised by the approval collaborator is a
            # rejection; cancelling the apply itself must propagate
            if _is_cancelling():
                self._enter(ApplyStage.REJECTED, preview.file_path)
                logger.info(f"Apply of {preview.file_path} cancelled while awaiting approval")
                raise
            logger.warning(f"Approval for {preview.file_path} was cancelled")
            return False, "Approval was cancelled"
        if not approved:
            return False, "Changes were rejected"
        return True, None


async def apply_diff(file_path: str,
                     sections: Iterable[RawSection],
                     root: str = '.',
                     auto_approve: Optional[bool] = None,
                     description: Optional[str] = None,
                     partial_success: bool = False,
                     create_if_missing: bool = False,
                     config: Optional[ApplyConfig] = None) -> ApplySummary:
    """
    Apply sections to a file under root on the local filesystem.

    auto_approve defaults to the configured value; when it is off every
    change is rejected, so pass a handler to ApplyDiffOrchestrator instead
    for interactive approval.
    """
    config = config or ApplyConfig.from_env()
    if auto_approve is None:
        auto_approve = config.auto_approve
    orchestrator = ApplyDiffOrchestrator(LocalFileStorage(root), get_approval_handler(auto_approve), config)
    return await orchestrator.apply(file_path, sections, description, partial_success, create_if_missing)
