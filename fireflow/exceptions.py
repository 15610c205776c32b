"""
fireflow/exceptions.py

Typed errors for the submission core. Callers catch by type, never by message.

    FlowError (base)
    |
    +-- FieldValidationError      draft rejected before any mutation
    +-- NonFatalSideEffectError   optional enrichment call failed; logged only
    +-- CallFailure               a backend create/update/delete was rejected
    +-- CompensationFailure       a delete issued during rollback was rejected

The backend services themselves keep raising fastapi.HTTPException, as the
routers expect; the gateway translates those into CallFailure.
"""

from typing import Dict, Optional


class FlowError(Exception):
    """Base class for every error the submission core raises."""

    code: str = "FLOW_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class FieldValidationError(FlowError):
    """One or more draft fields are missing or invalid. Always recoverable by editing."""

    code = "FIELD_VALIDATION"

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        fields = ", ".join(sorted(self.errors))
        super().__init__(f"Invalid fields: {fields}")


class NonFatalSideEffectError(FlowError):
    """An optional enrichment (e.g. saving interest settings) failed."""

    code = "NON_FATAL_SIDE_EFFECT"

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")


class CallFailure(FlowError):
    """A backend call was rejected during the main execution path."""

    code = "CALL_FAILURE"

    def __init__(self, operation: str, detail: str = "", status_code: Optional[int] = None):
        self.operation = operation
        self.detail = detail
        self.status_code = status_code
        message = f"{operation} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class CompensationFailure(FlowError):
    """A rollback delete failed. The resource may be orphaned."""

    code = "COMPENSATION_FAILURE"

    def __init__(self, kind: str, resource_id, cause: Optional[BaseException] = None):
        self.kind = kind
        self.resource_id = resource_id
        self.cause = cause
        super().__init__(f"Failed to roll back {kind} {resource_id}: {cause}")
