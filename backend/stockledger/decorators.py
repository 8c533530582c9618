# Overview: Request decorators for API routes: caller identity and error-to-JSON mapping.

from functools import wraps
from flask import current_app, g, jsonify

from .errors import LedgerError
from .extensions import db
from .identity import current_caller


def require_caller(*roles: str):
    """
    Require gateway identity headers and, optionally, one of `roles`.

    Sets g.caller to the Caller for the rest of the request.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            caller = current_caller()
            if caller is None:
                return jsonify({"error": "Authentication required", "code": "UNAUTHENTICATED"}), 401

            if roles and caller.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "code": "PERMISSION_DENIED",
                    "required_roles": list(roles),
                }), 403

            g.caller = caller
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def ledger_errors(f):
    """
    Translate service failures into JSON responses.

    LedgerError subclasses carry their own HTTP status; anything else is
    logged and reported as a 500. The session is always rolled back on error.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except LedgerError as e:
            db.session.rollback()
            return jsonify(e.to_dict()), e.http_status
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Unhandled error in %s", f.__name__)
            return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500

    return decorated_function
