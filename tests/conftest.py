"""
Pytest configuration and shared fixtures.
"""

import pytest
import pytest_asyncio
import sys
from pathlib import Path

# Set asyncio mode
pytest_plugins = ('pytest_asyncio',)

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from patchmate.diff_utils.core.config import ApplyConfig
from patchmate.diff_utils.file_ops.storage import InMemoryFileStorage, LocalFileStorage
from patchmate.diff_utils.pipeline.approval import AutoApprovalHandler


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "filesystem: mark test as touching the real filesystem"
    )
    config.option.asyncio_mode = "auto"


@pytest.fixture
def config():
    """Defaults, independent of PATCHMATE_DIFF_* variables in the environment."""
    return ApplyConfig(approval_timeout=5.0)


@pytest.fixture
def memory_storage():
    return InMemoryFileStorage({
        "src/app.js": "function f() {\n  return 1;\n}\n",
    })


@pytest.fixture
def local_storage(tmp_path):
    """LocalFileStorage rooted at a fresh temp directory."""
    return LocalFileStorage(str(tmp_path))


@pytest.fixture
def approver():
    return AutoApprovalHandler(approve=True)
