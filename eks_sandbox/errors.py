"""Error types raised by the sandbox orchestrator."""


class SandboxError(Exception):
    """Base error. Carries the failed operation and resource when known."""

    def __init__(self, message: str, operation: str | None = None, resource_id: str | None = None):
        self.message = message
        self.operation = operation
        self.resource_id = resource_id
        super().__init__(self._format())

    def _format(self) -> str:
        where = ""
        if self.operation and self.resource_id:
            where = f"{self.operation} ({self.resource_id}): "
        elif self.operation:
            where = f"{self.operation}: "
        return f"{where}{self.message}"


class ConfigurationError(SandboxError):
    """Profile, credentials, region or identity could not be resolved."""


class ResourceCreationError(SandboxError):
    """A create, attach or associate call failed."""


class InvariantViolation(SandboxError):
    """A local precondition failed before anything was sent to AWS."""


class TeardownError(SandboxError):
    """A describe, detach or delete call failed while tearing down."""


class CloudGatewayError(SandboxError):
    """An AWS API call returned an error."""

    def __init__(self, message: str, operation: str, resource_id: str | None = None, code: str = ""):
        self.code = code
        super().__init__(message, operation, resource_id)


class OperationCancelled(SandboxError):
    """The operator backed out of a prompt."""

    def __init__(self, message: str = "Cancelled"):
        super().__init__(message)
