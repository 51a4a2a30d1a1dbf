from flask import Blueprint, request, jsonify, make_response, current_app
from models.users import User
from models import db
from classes.errors import AuthError, BusinessRuleError
from classes.validators import require_json, clean_text, validate_email, validate_phone, parse_secret
from utils.tokens import get_jwt_token, decode_jwt
from utils.utils import csrf_protected, issue_csrf_token

auth_bp = Blueprint('auth_bp', __name__)


def set_access_cookie(response, token, max_age):
    response.set_cookie(
        "access_token", token,
        httponly=True,
        secure=current_app.config["SESSION_COOKIE_SECURE"],
        samesite=current_app.config["SESSION_COOKIE_SAMESITE"],
        path="/",
        max_age=max_age
    )
    return response


# CSRF token
@auth_bp.route('/csrf-token', methods=['GET'])
def csrf_token():
    return jsonify({"csrfToken": issue_csrf_token()}), 200


# Login
@auth_bp.route('/login', methods=['POST'])
@csrf_protected
def login():
    data = require_json(request.get_json(silent=True))
    username_or_email = clean_text(data, "usernameOrEmail", max_length=100) or ""
    password = parse_secret(data, "password")

    if not username_or_email or not password:
        raise AuthError("Username/email and password are required")

    user = User.query.filter(
        (User.username == username_or_email) | (User.email == username_or_email.lower())
    ).first()

    if not user or not user.check_password(password):
        current_app.logger.warning("Failed login for %s", username_or_email)
        raise AuthError("Invalid credentials")

    token = get_jwt_token({
        "user_id": user.id,
        "username": user.username,
        "role": user.role,
    })

    response = make_response(jsonify({
        "message": "Login successful",
        "user": user.to_dict()
    }))
    current_app.logger.info("User %s logged in", user.id)
    expiration = current_app.config["JWT_EXPIRATION"]
    return set_access_cookie(response, token, int(expiration.total_seconds()))


# Logout
@auth_bp.route('/logout', methods=['POST'])
@csrf_protected
def logout():
    response = make_response(jsonify({"message": "Logout successful"}))
    return set_access_cookie(response, "", 0)


# Register
@auth_bp.route('/register', methods=['POST'])
@csrf_protected
def register():
    data = require_json(request.get_json(silent=True))

    username = clean_text(data, "username", required=True, min_length=3, max_length=50)
    email = validate_email("email", (clean_text(data, "email", required=True, max_length=100) or "").lower())
    full_name = clean_text(data, "fullName", required=True, min_length=2, max_length=100)
    phone = validate_phone("phone", clean_text(data, "phone"))
    password = parse_secret(data, "password", min_length=8, max_length=128)

    existing_user = User.query.filter(
        (User.username == username) | (User.email == email)
    ).first()

    if existing_user:
        raise BusinessRuleError("User already exists", status_code=409)

    new_user = User(
        username=username,
        email=email,
        full_name=full_name,
        phone=phone,
        role="player"
    )
    new_user.set_password(password)

    db.session.add(new_user)
    db.session.commit()
    current_app.logger.info("Registered user %s (%s)", new_user.id, new_user.username)

    return jsonify({"message": "User registered successfully!", "user": new_user.to_dict()}), 201


# Auth Check
@auth_bp.route('/check-auth', methods=['GET'])
def check_auth():
    token = request.cookies.get("access_token")

    if not token:
        return jsonify({"error": "Not authenticated"}), 401

    decoded_token = decode_jwt(token)
    if not decoded_token:
        return jsonify({"error": "Invalid or expired token"}), 401

    return jsonify({
        "message": "Authenticated",
        "user": {
            "id": decoded_token.get("user_id"),
            "role": decoded_token.get("role"),
            "username": decoded_token.get("username")
        }
    }), 200
