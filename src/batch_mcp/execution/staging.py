from __future__ import annotations

import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType

import structlog

from ..errors import StagingFailed
from .config import STAGING_DIR_PREFIX, InterpreterProfile

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class StagedUnit:
    """Code payload written to a private directory the interpreter can address.

    `name` is the file stem the interpreter resolves against `workdir`.

    Example:
        ```python
        with stage_code("disp(1)", profile=MATLAB_PROFILE) as unit:
            print(unit.name, unit.path)
        ```
    """

    name: str
    path: Path
    workdir: Path
    released: bool = False

    def release(self) -> None:
        """Remove the staged directory. Safe to call more than once.

        Example:
            ```python
            unit.release()
            unit.release()
            ```
        """
        if self.released:
            return
        self.released = True
        try:
            shutil.rmtree(self.workdir)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning(
                "staged_unit_release_failed",
                workdir=str(self.workdir),
                error=str(exc),
            )

    def __enter__(self) -> StagedUnit:
        """Enter a scope that releases the unit on exit.

        Example:
            ```python
            with unit:
                ...
            ```
        """
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Release the unit on every exit path.

        Example:
            ```python
            unit.__exit__(None, None, None)
            ```
        """
        self.release()


def stage_code(
    code: str,
    *,
    profile: InterpreterProfile,
    root: str | Path | None = None,
) -> StagedUnit:
    """Write code to a uniquely named file inside a fresh private directory.

    Raises `StagingFailed` when the directory or file cannot be created or
    written; anything partially created is removed first.

    Example:
        ```python
        unit = stage_code("x = 1:5; disp(sum(x.^2))", profile=MATLAB_PROFILE)
        ```
    """
    try:
        workdir = Path(tempfile.mkdtemp(prefix=STAGING_DIR_PREFIX, dir=root))
    except OSError as exc:
        raise StagingFailed(str(exc)) from exc

    try:
        fd, raw_path = tempfile.mkstemp(
            prefix=f"{profile.name}_code_",
            suffix=profile.suffix,
            dir=workdir,
        )
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(code)
    except (OSError, UnicodeError) as exc:
        shutil.rmtree(workdir, ignore_errors=True)
        raise StagingFailed(str(exc)) from exc

    path = Path(raw_path)
    logger.debug("code_staged", unit=path.stem, workdir=str(workdir), size=len(code))
    return StagedUnit(name=path.stem, path=path, workdir=workdir)
