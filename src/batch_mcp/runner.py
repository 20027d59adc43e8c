from __future__ import annotations

from pathlib import Path

from .errors import StagingFailed
from .execution.config import DEFAULT_TIMEOUT_SECONDS, format_duration
from .execution.engine import ExecutionEngine
from .execution.staging import stage_code
from .execution.types import ExecutionOutcome, ExecutionRequest, OutcomeKind, ToolResult


def _with_output(message: str, output: str) -> str:
    """Append captured output to an error message when there is any.

    Example:
        ```python
        text = _with_output("execution timed out after 1s", "partial\\n")
        ```
    """
    if not output:
        return message
    return f"{message}\noutput: {output}"


def classify_outcome(outcome: ExecutionOutcome, *, timeout_seconds: float) -> ToolResult:
    """Map an execution outcome onto the caller-facing result.

    Example:
        ```python
        result = classify_outcome(ExecutionOutcome(OutcomeKind.COMPLETED, "5\\n", 0), timeout_seconds=30)
        ```
    """
    if outcome.kind is OutcomeKind.LAUNCH_FAILED:
        return ToolResult(
            text=_with_output(f"failed to start interpreter: {outcome.reason}", outcome.output),
            is_error=True,
        )
    if outcome.kind is OutcomeKind.TIMED_OUT:
        return ToolResult(
            text=_with_output(
                f"execution timed out after {format_duration(timeout_seconds)}",
                outcome.output,
            ),
            is_error=True,
        )
    if outcome.exit_ok:
        return ToolResult(text=outcome.output)
    return ToolResult(
        text=f"execution failed: exit status {outcome.returncode}\noutput: {outcome.output}",
        is_error=True,
    )


def classify_staging_failure(exc: StagingFailed) -> ToolResult:
    """Map a staging failure onto the caller-facing result.

    Example:
        ```python
        result = classify_staging_failure(StagingFailed("read-only file system"))
        ```
    """
    return ToolResult(text=f"failed to stage code: {exc.reason}", is_error=True)


async def run_code(
    code: str,
    engine: ExecutionEngine,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    staging_root: str | Path | None = None,
) -> ToolResult:
    """Stage code, run it through the engine under a deadline, and classify the outcome.

    Only malformed input raises (`ValueError`); every execution failure comes
    back as a `ToolResult` with `is_error=True`.

    Example:
        ```python
        from batch_mcp import BatchEngine, MATLAB_PROFILE, run_code
        engine = BatchEngine(profile=MATLAB_PROFILE)
        result = await run_code("disp(2+3)", engine=engine, timeout_seconds=30)
        ```
    """
    request = ExecutionRequest(code=code, timeout_seconds=timeout_seconds)
    try:
        unit = stage_code(request.code, profile=engine.profile, root=staging_root)
    except StagingFailed as exc:
        return classify_staging_failure(exc)

    with unit:
        outcome = await engine.execute(unit, request.timeout_seconds)
        return classify_outcome(outcome, timeout_seconds=request.timeout_seconds)
