class WorkflowError(Exception):
    """Base class for workflow-level programming/usage errors."""


class UnknownFieldError(WorkflowError):
    def __init__(self, field: str):
        super().__init__(f"Unknown reference field: {field}")
        self.field = field


class StageConflictError(WorkflowError):
    """Raised when an operation is requested from a stage that does not expose it."""

    def __init__(self, operation: str, stage: str):
        super().__init__(f"'{operation}' is not available while {stage}")
        self.operation = operation
        self.stage = stage


class WorkflowNotFound(WorkflowError):
    def __init__(self, workflow_id: str):
        super().__init__(f"Workflow {workflow_id} not found")
        self.workflow_id = workflow_id
