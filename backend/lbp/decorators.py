# Overview: Request decorators for API routes (caller identity, error mapping).

from functools import wraps
from flask import request, jsonify, g, current_app

from .errors import BadRequestError, ConflictError, NotFoundError


USER_HEADER = "X-User-Code"
AGENCY_HEADER = "X-Agency-Id"


def require_user(f):
    """
    Require a caller identity.

    Authentication happens upstream; this layer only needs the user code
    recorded on movements, invoices and payments. Sets:
    - g.user_code: The calling user's code - REQUIRED
    - g.agency_id: The caller's agency (None when absent)
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_code = (request.headers.get(USER_HEADER) or "").strip()
        if not user_code:
            return jsonify({"error": "Authentification requise"}), 401

        agency_header = (request.headers.get(AGENCY_HEADER) or "").strip()
        if agency_header and not agency_header.isdigit():
            return jsonify({"error": f"{AGENCY_HEADER} doit être un entier"}), 400

        g.user_code = user_code
        g.agency_id = int(agency_header) if agency_header else None
        return f(*args, **kwargs)

    return decorated_function


def handle_service_errors(action: str):
    """
    Translate service errors into JSON responses.

    NotFoundError -> 404, BadRequestError -> 400, ConflictError -> 409,
    anything else is logged and answered with 500.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except NotFoundError as e:
                return jsonify({"error": str(e)}), 404
            except BadRequestError as e:
                return jsonify({"error": str(e)}), 400
            except ConflictError as e:
                return jsonify({"error": str(e)}), 409
            except Exception:
                current_app.logger.exception("Failed to %s", action)
                return jsonify({"error": "Erreur interne du serveur"}), 500

        return decorated_function

    return decorator
