"""Error taxonomy shared by the Eden client, the pollers and the routes."""

from typing import Optional


class EdenError(Exception):
    """Base class for every failure raised while talking to Eden."""

    pass


class ValidationError(EdenError):
    """Exception raised when a required input is missing or malformed."""

    pass


class InvalidArgumentError(ValidationError):
    """Exception raised when an argument is present but unusable (e.g. a placeholder id)."""

    pass


class NotFoundError(EdenError):
    """Exception raised when the upstream API answers 404."""

    pass


class UpstreamError(EdenError):
    """Exception raised for any other non-success upstream response."""

    def __init__(self, status: int, body: str, url: Optional[str] = None):
        self.status = status
        self.body = body
        self.url = url
        super().__init__(f"Eden API {status}: {body}")


class ProtocolError(EdenError):
    """Exception raised when an upstream response lacks an expected field."""

    pass


class TransportError(EdenError):
    """Exception raised when the upstream API cannot be reached."""

    pass


class TaskFailedError(EdenError):
    """Exception raised when a generation task ends in the failed state."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} failed")
