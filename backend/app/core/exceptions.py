"""Workflow error hierarchy.

Each error carries the HTTP status the API boundary maps it to. None of
them is retried: they signal configuration problems or caller mistakes,
never transient faults.
"""
from fastapi import status


class WorkflowError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def code(self) -> str:
        return type(self).__name__


class NoApplicableRuleError(WorkflowError):
    """No active approval rule covers the amount/currency. An admin must add one."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NoAvailableApproverError(WorkflowError):
    """A rule's role has no active user to route the task to."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidStateError(WorkflowError):
    status_code = status.HTTP_409_CONFLICT


class ApprovalNotFoundError(WorkflowError):
    status_code = status.HTTP_404_NOT_FOUND


class EmptyRequestError(WorkflowError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFoundError(WorkflowError):
    status_code = status.HTTP_404_NOT_FOUND


class ValidationError(WorkflowError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class ConcurrentModificationError(WorkflowError):
    """Another writer changed the purchase request first (version mismatch)."""

    status_code = status.HTTP_409_CONFLICT
