from .batch_engine import BatchEngine
from .config import MATLAB_PROFILE, OCTAVE_PROFILE, InterpreterProfile, profile_for
from .engine import ExecutionEngine
from .staging import StagedUnit, stage_code
from .types import ExecutionOutcome, ExecutionRequest, OutcomeKind, ToolResult

__all__ = [
    "BatchEngine",
    "ExecutionEngine",
    "ExecutionOutcome",
    "ExecutionRequest",
    "InterpreterProfile",
    "MATLAB_PROFILE",
    "OCTAVE_PROFILE",
    "OutcomeKind",
    "StagedUnit",
    "ToolResult",
    "profile_for",
    "stage_code",
]
