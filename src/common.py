"""Common utilities and types for stack orchestration."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class StackError(Exception):
    """Base error for stack and change-set operations."""


class RemoteCallError(StackError):
    """A control plane or object store call failed.

    Carries the operation name and the stack/change-set identifiers so the
    failure can be diagnosed without re-running at higher verbosity. The
    underlying exception is chained as __cause__.
    """

    def __init__(self, operation: str, stack_name: str,
                 change_set: Optional[str] = None, reason: str = ''):
        self.operation = operation
        self.stack_name = stack_name
        self.change_set = change_set
        target = f"stack [{stack_name}]"
        if change_set:
            target += f" change-set [{change_set}]"
        message = f"{operation} failed for {target}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ChangeSetFailedError(StackError):
    """Change-set creation finished in FAILED status."""

    def __init__(self, stack_name: str, change_set: str, reason: str = ''):
        self.stack_name = stack_name
        self.change_set = change_set
        self.reason = reason
        message = f"Change-Set [{change_set}] failed for stack [{stack_name}]"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class UnknownStatusError(StackError):
    """Polling observed a status outside the recognised vocabulary."""

    def __init__(self, stack_name: str, change_set: str, status: str):
        self.stack_name = stack_name
        self.change_set = change_set
        self.status = status
        super().__init__(
            f"Change-Set [{change_set}] on stack [{stack_name}] "
            f"reported unrecognised status: {status}"
        )


class TailerBusyError(StackError):
    """A tailer is already running for the stack."""


@dataclass
class OperationResult:
    """Result returned by an orchestrated operation."""
    success: bool
    message: str = ''
    duration: float = 0.0
    error: Optional[StackError] = None


def remote_call(operation: str, stack_name: str, func: Callable[..., T], *args,
                change_set: Optional[str] = None, **kwargs) -> T:
    """Invoke a client call, wrapping any failure in RemoteCallError."""
    logger.debug(f"Calling [{operation}] for {stack_name}")
    try:
        return func(*args, **kwargs)
    except StackError:
        raise
    except Exception as e:
        raise RemoteCallError(operation, stack_name, change_set, str(e)) from e


def run_operation(name: str, func: Callable[[], str],
                  log: Optional[logging.Logger] = None) -> OperationResult:
    """Run an orchestration step and convert its outcome to an OperationResult.

    Args:
        name: Operation label used in failure logs
        func: Callable performing the operation; returns a success message

    Returns:
        OperationResult with success=False and the error attached when the
        operation raised a StackError.
    """
    log = log or logger
    start = time.time()
    try:
        message = func()
    except StackError as e:
        log.error(f"[{name}] {e}")
        return OperationResult(
            success=False,
            message=str(e),
            duration=time.time() - start,
            error=e,
        )
    return OperationResult(
        success=True,
        message=message,
        duration=time.time() - start,
    )
