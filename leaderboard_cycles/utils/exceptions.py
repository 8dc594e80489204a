class ServiceError(Exception):
    status = 400

    def __init__(self, code="SERVICE_ERROR", message="Service error", details=None, status=None):
        self.code = code
        self.message = message
        self.details = details or {}
        if status is not None:
            self.status = status
        super().__init__(message)


class ValidationError(ServiceError):
    """Rejected input. Nothing was written."""

    status = 422

    def __init__(self, message="Validation failed", details=None, code="VALIDATION_ERROR"):
        super().__init__(code=code, message=message, details=details)


class NotFoundError(ServiceError):
    status = 404

    def __init__(self, message="Resource not found", details=None, code="NOT_FOUND"):
        super().__init__(code=code, message=message, details=details)


class ConflictError(ServiceError):
    """A racing operation changed the cycle status first."""

    status = 409

    def __init__(self, message="Cycle was modified concurrently", details=None, code="CONFLICT"):
        super().__init__(code=code, message=message, details=details)


class IllegalTransitionError(ServiceError):
    status = 400

    def __init__(self, message="Transition not allowed", details=None, code="ILLEGAL_TRANSITION"):
        super().__init__(code=code, message=message, details=details)


class DependencyError(ServiceError):
    """An external collaborator (points ledger) failed."""

    status = 503

    def __init__(self, message="Dependency unavailable", details=None, code="DEPENDENCY_ERROR"):
        super().__init__(code=code, message=message, details=details)


class ForbiddenError(ServiceError):
    status = 403

    def __init__(self, message="Admin privileges required", details=None, code="FORBIDDEN"):
        super().__init__(code=code, message=message, details=details)
