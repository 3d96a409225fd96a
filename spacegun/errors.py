"""Error taxonomy shared by all Spacegun modules."""

from typing import Any, Optional


class SpacegunError(Exception):
    """Base class for all domain errors."""

    status_code = 500


class ConfigError(SpacegunError):
    """Configuration is missing or malformed. Fatal at startup."""


class GatewayError(SpacegunError):
    """A cluster or image gateway call failed (network, auth, not found)."""

    status_code = 502

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class PipelineNotFoundError(SpacegunError):
    """No pipeline with the requested name is loaded."""

    status_code = 404

    def __init__(self, name: str):
        super().__init__(f"Pipeline {name} could not be found")
        self.name = name


class OperationNotFoundError(SpacegunError):
    """The dispatcher has no operation with the requested identity."""

    status_code = 404

    def __init__(self, operation: str):
        super().__init__(f"Operation {operation} is not registered")
        self.operation = operation


class DispatchError(SpacegunError):
    """
    A remote call from the client layer failed.

    Carries the operation identity and, when the server answered, the
    response status and body.
    """

    status_code = 502

    def __init__(
        self,
        operation: str,
        message: str,
        status: Optional[int] = None,
        body: Any = None,
    ):
        super().__init__(f"Dispatch of {operation} failed: {message}")
        self.operation = operation
        self.status = status
        self.body = body


class CacheComputeError(SpacegunError):
    """A cache supplier failed with an exception that is not a domain error."""

    def __init__(self, key: Any, cause: BaseException):
        super().__init__(f"Computing cache entry {key!r} failed: {cause}")
        self.key = key
        self.cause = cause
