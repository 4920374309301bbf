from __future__ import annotations


class WorkbenchError(RuntimeError):
    """Base class for failures raised inside the workspace core."""


class WorkspaceValidationError(WorkbenchError):
    """Raised when an operation's precondition is not met.

    Always raised before any remote call is issued.
    """


class RemoteFailure(WorkbenchError):
    """Raised when the remote analysis service call fails."""

    def __init__(self, message: str, *, status_code: int | None = None, detail: object | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


__all__ = ["WorkbenchError", "WorkspaceValidationError", "RemoteFailure"]
