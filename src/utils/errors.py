"""
Error taxonomy for webhook handling and workflow execution.

- NotFoundError / AuthenticationError: surfaced immediately (404 / 401),
  before any execution record exists.
- ActionError and subclasses: recoverable, reported per step, never abort a run.
- EngineError: failure outside the action loop. Aborts the run, marks the
  execution as error, surfaced as 500.
"""


class PabblyError(Exception):
    """Base class for all workflow automation errors."""

    error_code = "pabbly_error"


class NotFoundError(PabblyError):
    error_code = "not_found"


class WorkflowNotFoundError(NotFoundError):
    error_code = "workflow_not_found"


class TriggerNotFoundError(NotFoundError):
    error_code = "trigger_not_found"


class ExecutionNotFoundError(NotFoundError):
    error_code = "execution_not_found"


class AuthenticationError(PabblyError):
    error_code = "authentication_failed"


class ConflictError(PabblyError):
    """A tenant already has a trigger listening on the same webhook slug."""

    error_code = "conflict"


class ActionError(PabblyError):
    error_code = "action_error"


class InvalidParameters(ActionError):
    error_code = "invalid_parameters"


class ActionExecutionError(ActionError):
    """The collaborator an action delegates to (email, HTTP) failed."""

    error_code = "action_execution_failed"


class EngineError(PabblyError):
    error_code = "engine_error"
