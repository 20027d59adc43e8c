import sys

import pytest

from batch_mcp import BatchEngine, InterpreterProfile

# Runs staged files with the current Python so the suite does not need MATLAB.
PYTHON_PROFILE = InterpreterProfile(
    name="python",
    command_name=sys.executable,
    path_env_var="BATCH_MCP_TEST_PYTHON",
    suffix=".py",
    argv_template=("{path}",),
)


@pytest.fixture
def python_engine() -> BatchEngine:
    return BatchEngine(profile=PYTHON_PROFILE, drain_grace_seconds=1.0)
