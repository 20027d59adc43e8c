from __future__ import annotations

from dataclasses import dataclass

DEFAULT_TIMEOUT_SECONDS = 300.0
DEFAULT_INTERPRETER = "matlab"
STAGING_DIR_PREFIX = "batch_mcp_"


@dataclass(frozen=True, slots=True)
class InterpreterProfile:
    """Batch invocation contract of one external interpreter.

    `argv_template` entries may reference `{name}` (the staged unit name without
    extension) and `{path}` (the full path of the staged code file).

    Example:
        ```python
        profile = InterpreterProfile("matlab", "matlab", "MATLAB_PATH", ".m", ("-batch", "{name}"))
        ```
    """

    name: str
    command_name: str
    path_env_var: str
    suffix: str
    argv_template: tuple[str, ...]

    def command(self, executable: str, *, name: str, path: str) -> list[str]:
        """Build the argv that runs one staged unit in batch mode.

        Example:
            ```python
            argv = MATLAB_PROFILE.command("matlab", name="matlab_code_x1", path="/tmp/d/matlab_code_x1.m")
            ```
        """
        return [executable, *(arg.format(name=name, path=path) for arg in self.argv_template)]


MATLAB_PROFILE = InterpreterProfile(
    name="matlab",
    command_name="matlab",
    path_env_var="MATLAB_PATH",
    suffix=".m",
    argv_template=("-batch", "{name}"),
)

OCTAVE_PROFILE = InterpreterProfile(
    name="octave",
    command_name="octave-cli",
    path_env_var="OCTAVE_PATH",
    suffix=".m",
    argv_template=("--quiet", "--no-init-file", "{path}"),
)

PROFILES = {
    MATLAB_PROFILE.name: MATLAB_PROFILE,
    OCTAVE_PROFILE.name: OCTAVE_PROFILE,
}


def profile_for(name: str) -> InterpreterProfile:
    """Return the registered profile for an interpreter name.

    Example:
        ```python
        profile = profile_for("octave")
        ```
    """
    try:
        return PROFILES[name.strip().lower()]
    except KeyError:
        known = ", ".join(sorted(PROFILES))
        raise ValueError(f"Unknown interpreter '{name}'. Expected one of: {known}") from None


def format_duration(seconds: float) -> str:
    """Render a timeout the way it appears in result messages.

    Example:
        ```python
        assert format_duration(300) == "300s"
        ```
    """
    return f"{float(seconds):g}s"
