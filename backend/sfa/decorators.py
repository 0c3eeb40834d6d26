# Overview: Request decorators for API routes.

from functools import wraps
from flask import current_app, jsonify

from .errors import CoreError


def require_client_stock_enabled(f):
    """
    Gate client stock endpoints behind the CLIENT_STOCK_ENABLED flag.

    Returns 403 while the feature is switched off.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_app.config.get("CLIENT_STOCK_ENABLED", True):
            return jsonify({
                "success": False,
                "message": "Client stock feature is currently disabled",
            }), 403
        return f(*args, **kwargs)

    return decorated_function


def handle_service_errors(action: str):
    """
    Translate service-layer errors into the JSON error envelope.

    - CoreError subclasses: their http_status, code, message and details
    - anything else: logged with traceback, generic 500
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except CoreError as e:
                body = {"success": False, "message": e.message}
                body.update(e.to_dict())
                return jsonify(body), e.http_status
            except Exception:
                current_app.logger.exception("Failed to %s", action)
                return jsonify({"success": False, "message": f"Error trying to {action}", "error": "Internal server error"}), 500

        return decorated_function

    return decorator
