from .errors import BatchMCPError, StagingFailed
from .execution.batch_engine import BatchEngine
from .execution.config import MATLAB_PROFILE, OCTAVE_PROFILE, InterpreterProfile
from .execution.types import ToolResult
from .runner import run_code
from .settings import ServerSettings

__all__ = [
    "BatchEngine",
    "BatchMCPError",
    "InterpreterProfile",
    "MATLAB_PROFILE",
    "OCTAVE_PROFILE",
    "ServerSettings",
    "StagingFailed",
    "ToolResult",
    "run_code",
]
