# Overview: Request decorators for API routes.

from functools import wraps
from flask import jsonify, current_app

from .services.errors import (
    ServiceError,
    ValidationError,
    InvalidCustomer,
    EntityNotFound,
    InsufficientStock,
    InvalidStateTransition,
    DuplicateIdentifier,
    PersistenceFailure,
)


# Each failure kind keeps its own status so clients can tell them apart
STATUS_BY_ERROR = {
    ValidationError: 400,
    InvalidCustomer: 400,
    EntityNotFound: 404,
    InsufficientStock: 409,
    InvalidStateTransition: 409,
    DuplicateIdentifier: 409,
    PersistenceFailure: 500,
}


def status_for(error: ServiceError) -> int:
    for error_type in type(error).__mro__:
        if error_type in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[error_type]
    return 500


def handle_service_errors(action: str):
    """
    Translate ServiceError subclasses into JSON error responses.

    Anything else is logged with its traceback and reported as a generic 500.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except ServiceError as e:
                status = status_for(e)
                if status >= 500:
                    current_app.logger.error("Failed to %s: %s", action, e)
                return jsonify(e.to_dict()), status
            except Exception:
                current_app.logger.exception("Failed to %s", action)
                return jsonify({"error": "Internal server error"}), 500

        return decorated_function
    return decorator
