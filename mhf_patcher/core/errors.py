"""Error taxonomy for the patch pipeline.

Every failure inside a patch run surfaces as a subclass of PatcherError:

1. ManifestError: the manifest text is structurally invalid
2. FilesystemError: a local read/write/rename/mkdir failed
3. TransportError: a download request or response failed

All of them are terminal for the current run. Nothing is retried internally.
"""

from __future__ import annotations


class PatcherError(Exception):
    """Base class for patch pipeline failures.

    Attributes:
        path: Tree-relative or absolute path involved, if any
        url: Remote URL involved, if any
    """

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        url: str | None = None,
    ):
        self.message = message
        self.path = path
        self.url = url
        super().__init__(message)


class ManifestError(PatcherError):
    """Raised when a manifest line is malformed or points outside the tree.

    Attributes:
        line_number: 1-based line number of the offending line
    """

    def __init__(
        self,
        message: str,
        *,
        line_number: int | None = None,
        path: str | None = None,
    ):
        self.line_number = line_number
        super().__init__(message, path=path)


class FilesystemError(PatcherError):
    """Raised when a local filesystem operation fails."""


class TransportError(PatcherError):
    """Raised when fetching a file from the patch server fails.

    Attributes:
        status_code: HTTP status of a non-success response
        expected: Expected digest when downloaded content fails verification
        actual: Actual digest of the downloaded content
    """

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        path: str | None = None,
        status_code: int | None = None,
        expected: str | None = None,
        actual: str | None = None,
    ):
        self.status_code = status_code
        self.expected = expected
        self.actual = actual
        super().__init__(message, path=path, url=url)
