from __future__ import annotations


class BatchMCPError(Exception):
    """Base class for errors raised by batch-mcp."""


class StagingFailed(BatchMCPError):
    """Raised when submitted code cannot be written to a staged unit.

    Example:
        ```python
        raise StagingFailed("[Errno 28] No space left on device")
        ```
    """

    def __init__(self, reason: str) -> None:
        """Store the human-readable failure reason.

        Example:
            ```python
            exc = StagingFailed("read-only file system")
            ```
        """
        super().__init__(reason)
        self.reason = reason
