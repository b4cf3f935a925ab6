"""
MCP Tools module initialization.

This module provides the apply_diff tool, which lets a model apply search and
replace sections to project files.
"""

from patchmate.mcp.tools.base import BaseMCPTool
from patchmate.mcp.tools.apply_diff import ApplyDiffTool, ApplyDiffInput, DiffSectionInput
