# Overview: Failure taxonomy shared by the ledger, sale engine and stock services.

"""
Every failure a service can report is a ServiceError subclass with a stable
`code`. Routes translate codes to HTTP statuses; nothing is downgraded to a
success response.

RECOVERABILITY:
- ValidationError / InvalidCustomer / EntityNotFound: fix the request.
- InsufficientStock: retry with adjusted quantities.
- InvalidStateTransition: conflict, the sale is already in a terminal state.
- DuplicateIdentifier: retry; a fresh sale number is generated per attempt.
- PersistenceFailure: the unit of work was rolled back; the operation failed,
  the process is fine.
"""


class ServiceError(Exception):
    """Base class for service-layer failures."""
    code = "service_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


class ValidationError(ServiceError):
    """400-level input problem."""
    code = "validation_error"


class InvalidCustomer(ServiceError):
    code = "invalid_customer"


class EntityNotFound(ServiceError):
    code = "not_found"

    def __init__(self, entity: str, key, details: dict | None = None):
        super().__init__(f"{entity} {key} not found", details or {"entity": entity, "key": key})
        self.entity = entity
        self.key = key


class InsufficientStock(ServiceError):
    code = "insufficient_stock"


class InvalidStateTransition(ServiceError):
    code = "invalid_state_transition"


class DuplicateIdentifier(ServiceError):
    code = "duplicate_identifier"


class PersistenceFailure(ServiceError):
    code = "persistence_failure"
