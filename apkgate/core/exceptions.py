"""
Error taxonomy for pipeline runs.
"""
from typing import Optional


class ApkGateError(Exception):
    """Base class for all apkgate errors"""


class ConfigError(ApkGateError):
    """Configuration could not be loaded or is invalid"""


class BuildError(ApkGateError):
    """A pipeline run could not produce or publish an artifact"""


class StepFailed(BuildError):
    """A delegated external step failed"""

    def __init__(self, step_name: str, diagnostic_ref: Optional[str] = None, reason: Optional[str] = None):
        self.step_name = step_name
        self.diagnostic_ref = diagnostic_ref
        self.reason = reason
        message = f"Step '{step_name}' failed"
        if reason:
            message += f": {reason}"
        if diagnostic_ref:
            message += f" (see {diagnostic_ref})"
        super().__init__(message)


class BuildTimeout(BuildError):
    """The run exceeded its time bound"""

    def __init__(self, timeout_seconds: float, log_ref: Optional[str] = None):
        self.timeout_seconds = timeout_seconds
        self.log_ref = log_ref
        message = f"Build exceeded timeout of {timeout_seconds:.0f}s"
        if log_ref:
            message += f" (partial logs: {log_ref})"
        super().__init__(message)


class NumberConflict(BuildError):
    """A build number was issued twice"""

    def __init__(self, build_number: int):
        self.build_number = build_number
        super().__init__(f"Build number {build_number} has already been issued")


class InvalidReleaseName(BuildError):
    """A release name override contains characters not allowed in tags"""

    def __init__(self, value: str, allowed: str = "A-Z a-z 0-9 . _ -"):
        self.value = value
        super().__init__(
            f"Invalid release name {value!r}: only [{allowed}] characters are allowed"
        )


class CacheWriteDenied(BuildError):
    """The run's provenance does not allow writing to a shared cache"""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Cache write denied for key '{key}' (read-only access)")


class CacheUnavailable(ApkGateError):
    """The shared cache backend could not be reached. Never fails a build."""

    def __init__(self, operation: str, cause: Optional[Exception] = None):
        self.operation = operation
        self.cause = cause
        message = f"Cache backend unavailable during {operation}"
        if cause:
            message += f": {cause}"
        super().__init__(message)
