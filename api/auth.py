"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login            -> access token in the body, refresh token in an HttpOnly cookie
- POST /auth/refresh          -> rotate the refresh cookie, new access token
- POST /auth/logout           -> clear the stored refresh token and the cookie
- GET  /auth/me
- POST /auth/forgot-password, /auth/resend-otp, /auth/verify-otp, /auth/reset-password

The session rules themselves live in `security`; this module only moves
values between HTTP and those calls.
"""
from __future__ import annotations

import hmac
import logging

from flask import Blueprint, request, jsonify, g, abort, current_app

from models import storage
from models.user import User
from models.schemas.user import (
    AccountOutSchema,
    EmailSchema,
    LoginSchema,
    RegisterSchema,
    ResetPasswordSchema,
    VerifyCodeSchema,
)
from security.credentials import hash_password
from security.errors import Forbidden
from security.reset import ResetOutcome
from security.revocation import logout as end_session
from security.rotation import login as start_session, rotate
from utils.cookies import clear_refresh_cookie, read_refresh_cookie, set_refresh_cookie
from utils.decorators import jwt_required
from api.errors import auth_error_response, error_response

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
email_schema = EmailSchema()
verify_code_schema = VerifyCodeSchema()
reset_password_schema = ResetPasswordSchema()
account_out_schema = AccountOutSchema()

RESET_REQUESTED_MESSAGE = "If an account with that email exists, an OTP has been sent."


def _store():
    return current_app.extensions["session_store"]


def _issuer():
    return current_app.extensions["token_issuer"]


def _resets():
    return current_app.extensions["reset_challenges"]


def _session_body(grant, **extra):
    body = {
        "access_token": grant.tokens.access_token,
        "token_type": "bearer",
        "expires_in": int(current_app.config["ACCESS_TOKEN_EXPIRES"].total_seconds()),
        "user": account_out_schema.dump(grant.account),
    }
    body.update(extra)
    return body


def _admin_key_matches(presented: str | None) -> bool:
    expected = current_app.config.get("ADMIN_REGISTRATION_KEY")
    if not expected or not presented:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), presented.encode("utf-8"))


@bp.post("/register")
def register():
    """
    Register a new account.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            name: { type: string }
            email: { type: string }
            password: { type: string }
            role: { type: string, enum: [user, admin] }
            admin_key: { type: string }
    responses:
      201:
        description: Created
      403:
        description: Admin key missing or wrong
      409:
        description: Email already registered
      422:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    data = register_schema.load(payload)

    # Separate, out-of-band check; not part of the token lifecycle
    if data["role"] == "admin" and not _admin_key_matches(data.get("admin_key")):
        raise Forbidden(message="Invalid admin key or not provided")

    store = current_app.extensions["session_store"]
    if store.get_account_by_email(data["email"]) is not None:
        abort(409, description="Email already registered")

    user = User(
        name=data["name"],
        email=data["email"],
        password_hash=hash_password(data["password"]),
        role=data["role"],
        refresh_token=None,
    )
    storage.new(user)
    storage.save()
    logger.info("Registered account %s with role %s", user.id, user.role)

    return jsonify(
        {
            "message": "User Registered Successfully",
            "user": account_out_schema.dump(user),
        }
    ), 201


@bp.post("/login")
def login():
    """
    Login: access token in the body, refresh token as an HttpOnly cookie
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns access token, sets refresh cookie)
      401:
        description: Invalid credentials
      503:
        description: Session could not be saved
    """
    payload = request.get_json(silent=True) or {}
    data = login_schema.load(payload)

    grant = start_session(
        _store(),
        _issuer(),
        data["email"],
        data["password"],
        write_attempts=current_app.config["SESSION_WRITE_ATTEMPTS"],
    )
    response = jsonify(_session_body(grant, message="Login Successful"))
    set_refresh_cookie(response, grant.tokens.refresh_token)
    return response, 200


@bp.post("/refresh")
def refresh():
    """
    Rotate the refresh-token cookie and obtain a new access token
    ---
    tags:
      - Auth
    responses:
      200:
        description: OK (new access token, new refresh cookie)
      401:
        description: Session expired
      503:
        description: Session could not be saved
    """
    result = rotate(
        _store(),
        _issuer(),
        read_refresh_cookie(),
        write_attempts=current_app.config["SESSION_WRITE_ATTEMPTS"],
    )
    if not result.ok:
        response, status = auth_error_response(result.error())
        if result.clear_cookie:
            clear_refresh_cookie(response)
        return response, status

    response = jsonify(_session_body(result.grant))
    set_refresh_cookie(response, result.grant.tokens.refresh_token)
    return response, 200


@bp.post("/logout")
@jwt_required()
def logout():
    """
    Logout: forget the stored refresh token and clear the cookie
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Logged out, cookie cleared
      401:
        description: Unauthorized
    """
    # The cookie is cleared even when the store write fails
    end_session(_store(), g.current_claims.subject_id)
    response = jsonify({"message": "Logged out successfully"})
    clear_refresh_cookie(response)
    return response, 200


@bp.get("/me")
@jwt_required()
def me():
    """
    Current account, as carried by the access token
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return jsonify({"user": g.current_claims.public_view()}), 200


@bp.post("/forgot-password")
def forgot_password():
    """
    Send a one-time reset code to the account's email
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
    responses:
      200:
        description: Always the same response, whether or not the account exists
    """
    data = email_schema.load(request.get_json(silent=True) or {})
    _resets().issue(data["email"])
    return jsonify({"success": True, "message": RESET_REQUESTED_MESSAGE}), 200


@bp.post("/resend-otp")
def resend_otp():
    """
    Issue a fresh reset code, superseding the previous one
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
    responses:
      200:
        description: Always the same response, whether or not the account exists
    """
    data = email_schema.load(request.get_json(silent=True) or {})
    _resets().issue(data["email"])
    return jsonify({"success": True, "message": RESET_REQUESTED_MESSAGE}), 200


@bp.post("/verify-otp")
def verify_otp():
    """
    Check a reset code without consuming it
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
            otp: { type: string }
    responses:
      200:
        description: Code is valid
      400:
        description: Invalid or expired OTP
    """
    data = verify_code_schema.load(request.get_json(silent=True) or {})
    if not _resets().verify(data["email"], data["otp"]):
        return error_response("BAD_REQUEST", "Invalid or expired OTP", 400)
    return jsonify({"success": True, "message": "OTP verified successfully"}), 200


@bp.post("/reset-password")
def reset_password():
    """
    Set a new password with a valid reset code; ends existing sessions
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
            otp: { type: string }
            new_password: { type: string }
    responses:
      200:
        description: Password changed
      400:
        description: Invalid or expired OTP, or password unchanged
      422:
        description: Validation error
    """
    data = reset_password_schema.load(request.get_json(silent=True) or {})
    outcome = _resets().apply_new_password(data["email"], data["otp"], data["new_password"])
    if outcome is ResetOutcome.PASSWORD_UNCHANGED:
        return error_response("BAD_REQUEST", "New password cannot be the same as current password", 400)
    if not outcome.ok:
        return error_response("BAD_REQUEST", "Invalid or expired OTP", 400)
    return jsonify(
        {
            "success": True,
            "message": "Password reset successfully. You can now login with your new password.",
        }
    ), 200
