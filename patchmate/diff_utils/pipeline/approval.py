"""
Approval handlers deciding whether a previewed change may be written.
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, Union

from patchmate.utils.logging_utils import logger
from ..core.models import ApprovalPreview

ApprovalCallback = Callable[[ApprovalPreview], Union[bool, Awaitable[bool]]]


class ApprovalHandler(ABC):
    """Shows a preview and returns the accept/reject decision."""

    @abstractmethod
    async def request_approval(self, preview: ApprovalPreview) -> bool:
        ...


class AutoApprovalHandler(ApprovalHandler):
    """Answers every request with a fixed decision without showing anything."""

    def __init__(self, approve: bool = True):
        self.approve = approve
        self.requests = 0

    async def request_approval(self, preview: ApprovalPreview) -> bool:
        self.requests += 1
        logger.debug(f"Auto-{'approving' if self.approve else 'rejecting'} changes to {preview.file_path}")
        return self.approve


class CallbackApprovalHandler(ApprovalHandler):
    """
    Delegates the decision to a callable.

    The callback may be a plain function or a coroutine function. When a
    timeout is set and the callback does not answer in time, the request is
    treated as rejected.
    """

    def __init__(self, callback: ApprovalCallback, timeout: Optional[float] = None):
        self.callback = callback
        self.timeout = timeout

    async def _ask(self, preview: ApprovalPreview) -> bool:
        answer = self.callback(preview)
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)

    async def request_approval(self, preview: ApprovalPreview) -> bool:
        if self.timeout is None:
            return await self._ask(preview)
        try:
            return await asyncio.wait_for(self._ask(preview), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"No approval response for {preview.file_path} within {self.timeout}s, rejecting")
            return False


def get_approval_handler(auto_approve: bool) -> ApprovalHandler:
    """
    Build the approval handler for the auto_approve setting.

    With auto_approve off there is nobody to ask, so every change is rejected
    until a real handler is injected.
    """
    return AutoApprovalHandler(approve=auto_approve)
