from __future__ import annotations

import math
from dataclasses import dataclass
from enum import StrEnum

from .config import DEFAULT_TIMEOUT_SECONDS


@dataclass(frozen=True, slots=True)
class ExecutionRequest:
    """Validated request to run one code payload.

    Example:
        ```python
        req = ExecutionRequest(code="disp(2+3)", timeout_seconds=30)
        ```
    """

    code: str
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        """Reject payloads and timeouts the executor cannot honour.

        Example:
            ```python
            ExecutionRequest(code="", timeout_seconds=1)
            ```
        """
        if not isinstance(self.code, str):
            raise ValueError("'code' must be a string")
        timeout = self.timeout_seconds
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            raise ValueError("'timeout_seconds' must be a number")
        if not math.isfinite(timeout) or timeout <= 0:
            raise ValueError("'timeout_seconds' must be a positive number of seconds")


class OutcomeKind(StrEnum):
    """How a launched run ended, before it is mapped onto a tool result.

    Example:
        ```python
        assert OutcomeKind("timed_out") is OutcomeKind.TIMED_OUT
        ```
    """

    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    LAUNCH_FAILED = "launch_failed"


@dataclass(frozen=True, slots=True)
class ExecutionOutcome:
    """Terminal state of one interpreter run plus its combined output.

    Example:
        ```python
        out = ExecutionOutcome(OutcomeKind.COMPLETED, output="5\\n", returncode=0)
        ```
    """

    kind: OutcomeKind
    output: str = ""
    returncode: int | None = None
    reason: str | None = None

    @property
    def exit_ok(self) -> bool:
        """Return True when the interpreter ran to completion and reported success.

        Example:
            ```python
            assert ExecutionOutcome(OutcomeKind.COMPLETED, returncode=0).exit_ok
            ```
        """
        return self.kind is OutcomeKind.COMPLETED and self.returncode == 0

    @property
    def timed_out(self) -> bool:
        """Return True when the deadline elapsed before the interpreter exited.

        Example:
            ```python
            assert ExecutionOutcome(OutcomeKind.TIMED_OUT).timed_out
            ```
        """
        return self.kind is OutcomeKind.TIMED_OUT


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Caller-facing projection of an execution outcome.

    Example:
        ```python
        result = ToolResult(text="5\\n", is_error=False)
        ```
    """

    text: str
    is_error: bool = False
