"""
core/errors.py -- Exception hierarchy for FediSession.

Three failure families, each with a fixed handling policy:

  StateError      -- an operation was attempted out of sequence (not logged
                     in, application not initialized). Local, never retried.
  ValidationError -- caller input broke a local contract (status text length,
                     unparseable duration, rules not acknowledged). Always
                     raised before any network call.
  RemoteFailure   -- the instance answered with a non-success result or could
                     not be reached. Carries the status code and the failing
                     operation for diagnosis.

Layer rule: core/ is the kernel. This module imports nothing from the project.
"""

from typing import Optional


class SessionError(Exception):
    """Base exception for all FediSession errors."""


class StateError(SessionError):
    """Raised when an operation is attempted out of the required sequence."""


class ValidationError(SessionError, ValueError):
    """Raised when caller-supplied input violates a local contract."""


class PreconditionError(ValidationError):
    """Raised when registration is attempted before the rules were fetched."""


class RemoteFailure(SessionError):
    """Raised when a call to the instance does not succeed.

    status_code is None when no HTTP response was received at all
    (DNS failure, refused connection, timeout).
    """

    def __init__(self, operation: str, result_type: str, status_code: Optional[int] = None) -> None:
        self.operation = operation
        self.result_type = result_type
        self.status_code = status_code
        status = status_code if status_code is not None else "no response"
        super().__init__(f"{operation}<{result_type}> failed: {status}")
