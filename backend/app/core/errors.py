from typing import Dict, Optional


class StatusPageError(Exception):
    """
    Base class for errors raised by the domain and repository layers.
    The HTTP boundary maps each subclass to a status code.
    """

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(StatusPageError):
    status_code = 400

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.details: Dict[str, str] = {field: message}


class IllegalTransitionError(StatusPageError):
    status_code = 400

    def __init__(self, current: str, target: str, entity: str = "status"):
        super().__init__(f"Invalid status transition from {current} to {target}")
        self.current = current
        self.target = target
        self.entity = entity


class NotFoundError(StatusPageError):
    status_code = 404

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        super().__init__(f"{resource} not found")
        self.resource = resource
        self.resource_id = resource_id


class ForbiddenError(StatusPageError):
    status_code = 403


class ConflictError(StatusPageError):
    status_code = 409


class UnauthorizedError(StatusPageError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)
