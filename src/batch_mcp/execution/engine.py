from __future__ import annotations

from typing import Protocol

from .config import InterpreterProfile
from .staging import StagedUnit
from .types import ExecutionOutcome


class ExecutionEngine(Protocol):
    @property
    def profile(self) -> InterpreterProfile:
        """Return the interpreter profile used to stage and launch code.

        Example:
            ```python
            suffix = engine.profile.suffix
            ```
        """
        ...

    async def execute(self, unit: StagedUnit, timeout_seconds: float) -> ExecutionOutcome:
        """Run one staged unit under a deadline and return its outcome.

        Example:
            ```python
            outcome = await engine.execute(unit, timeout_seconds=30)
            ```
        """
        ...
