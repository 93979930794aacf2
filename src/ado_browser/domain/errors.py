from __future__ import annotations


def require_non_blank(**values: str | None) -> None:
    """Raise InvalidArgumentError naming the first blank keyword value."""
    for name, value in values.items():
        if value is None or not str(value).strip():
            raise InvalidArgumentError(f"{name} cannot be null or empty")


def require_positive(**values: int) -> None:
    for name, value in values.items():
        if value <= 0:
            raise InvalidArgumentError(f"{name} must be a positive integer")


class AzureDevOpsError(Exception):
    """Base class for every failure surfaced by ado-browser."""


class InvalidArgumentError(AzureDevOpsError, ValueError):
    """An identifier or parameter was blank or out of range."""


class UpstreamUnavailableError(AzureDevOpsError):
    """An Azure DevOps request failed with a non-success status or transport error."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        commit_id: str | None = None,
        path: str | None = None,
        segment: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.commit_id = commit_id
        self.path = path
        self.segment = segment


class InvalidCommitMetadataError(AzureDevOpsError):
    def __init__(self, commit_id: str) -> None:
        super().__init__(f"Commit '{commit_id}' does not contain a valid tree ID")
        self.commit_id = commit_id


class NotFoundError(AzureDevOpsError, LookupError):
    def __init__(
        self,
        message: str,
        commit_id: str | None = None,
        path: str | None = None,
        segment: str | None = None,
    ) -> None:
        super().__init__(message)
        self.commit_id = commit_id
        self.path = path
        self.segment = segment


class UnexpectedObjectTypeError(AzureDevOpsError):
    """A file was found where the path still expects a directory."""

    def __init__(self, commit_id: str, path: str, segment: str) -> None:
        super().__init__(
            f"'{segment}' in path '{path}' at commit '{commit_id}' is a file, not a directory"
        )
        self.commit_id = commit_id
        self.path = path
        self.segment = segment
