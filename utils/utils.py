import hmac
import secrets
from functools import wraps
from flask import request, jsonify, g, session, current_app
from utils.tokens import decode_jwt


def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = request.cookies.get("access_token")
        if not token:
            return jsonify({"error": "Unauthorized"}), 401

        decoded = decode_jwt(token)
        if not decoded or not decoded.get("user_id"):
            return jsonify({"error": "Invalid or expired token"}), 401

        g.user = decoded
        return f(*args, **kwargs)

    return decorated_function


def admin_required(f):
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if g.user.get("role") != "admin":
            current_app.logger.warning(
                "Non-admin user %s denied access to %s", g.user.get("user_id"), request.path
            )
            return jsonify({"error": "Unauthorized: admin access required"}), 403
        return f(*args, **kwargs)

    return decorated_function


def issue_csrf_token():
    token = session.get("csrf_token")
    if not token:
        token = secrets.token_urlsafe(32)
        session["csrf_token"] = token
    return token


def csrf_protected(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = session.get("csrf_token")
        provided = request.headers.get(current_app.config["CSRF_HEADER"], "")
        if not expected or not hmac.compare_digest(expected, provided):
            current_app.logger.warning("CSRF validation failed for %s %s", request.method, request.path)
            return jsonify({"error": "Invalid or missing CSRF token"}), 403
        return f(*args, **kwargs)

    return decorated_function


def current_user_id():
    return g.user.get("user_id")
