"""
fetchcore.errors
~~~~~~~~~~~~~~~~
Exception types raised inside the engine.

Helpers raise these; the pipeline and the worker catch them at the
subprocess boundary and turn them into session status.
"""


class FetchCoreError(Exception):
    """Base exception for all engine errors."""


class ToolNotFoundError(FetchCoreError):
    """Raised when the fetcher or transcoder path is missing or not executable."""


class LaunchFailureError(FetchCoreError):
    """Raised when a subprocess could not be spawned at all."""


class NonZeroExitError(FetchCoreError):
    """Raised when an external tool exits with a failure code."""

    def __init__(self, tool: str, code: int):
        super().__init__(f"{tool} exited with code {code}")
        self.tool = tool
        self.code = code


class ProbeFailureError(FetchCoreError):
    """Raised by the low-level probe call; the inspector degrades it to "unknown"."""


class FilesystemError(FetchCoreError):
    """Raised when a rename/delete/write affecting the output path fails."""
