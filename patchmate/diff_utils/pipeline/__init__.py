"""
Pipeline module for applying diff sections.

This module ties validation, content building, approval and the final write
together into a single apply call.
"""

from .apply_pipeline import ApplyDiffOrchestrator, apply_diff
from .approval import ApprovalHandler, AutoApprovalHandler, CallbackApprovalHandler, get_approval_handler
