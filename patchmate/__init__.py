"""
patchmate - apply localized, hint-guided text edits to existing files.
"""

__version__ = "0.1.0"
