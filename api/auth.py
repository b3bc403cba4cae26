"""
Authentication blueprint:
- POST /api/v1/auth/register
- POST /api/v1/auth/login
- POST /api/v1/auth/refresh   (bearer access token + refresh secret in body)
- POST /api/v1/auth/logout    (bearer access token)

The handlers only validate input and shape output; the protocol itself
(rotation, reuse detection, single session per account) lives in
services.session_service. Errors propagate to api.errors, which maps the
taxonomy onto status codes.
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g, current_app

from models.schemas.auth import (
    RegisterSchema,
    LoginSchema,
    RefreshSchema,
    AuthResponseSchema,
    TokenRefreshResponseSchema,
)
from utils.decorators import jwt_required

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshSchema()
auth_response_schema = AuthResponseSchema()
token_refresh_response_schema = TokenRefreshResponseSchema()


def _service():
    return current_app.extensions["session_service"]


@bp.post("/register")
def register():
    """
    Register a new account and open its session.
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
          required: [email, name, password]
          properties:
            email: { type: string }
            name: { type: string }
            password: { type: string }
    responses:
      201:
        description: Created (returns tokens and public profile)
      400:
        description: Validation error
      409:
        description: Email already exists
    """
    payload = request.get_json(silent=True) or {}
    data = register_schema.load(payload)

    pair = _service().register(
        data["email"], data["name"], data["password"], avatar=data.get("avatar")
    )
    return jsonify(auth_response_schema.dump(pair)), 201


@bp.post("/login")
def login():
    """
    Login: return access token, refresh token and public profile
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
        description: OK (returns tokens)
      400:
        description: Validation error
      401:
        description: Invalid credentials
    """
    payload = request.get_json(silent=True) or {}
    data = login_schema.load(payload)

    pair = _service().login(data["email"], data["password"])
    return jsonify(auth_response_schema.dump(pair)), 200


@bp.post("/refresh")
@jwt_required()
def refresh():
    """
    Exchange the current refresh token for new tokens (rotation).
    The presented refresh token is invalidated; presenting it again revokes the session.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             userId: { type: string }
             refreshToken: { type: string }
    responses:
      200:
        description: OK (returns new tokens)
      401:
        description: Missing or invalid access token
      403:
        description: Invalid, reused or missing refresh token
    """
    payload = request.get_json(silent=True) or {}
    data = refresh_schema.load(payload)

    pair = _service().refresh(str(data["user_id"]), data["refresh_token"])
    return jsonify(token_refresh_response_schema.dump(pair)), 200


@bp.post("/logout")
@jwt_required()
def logout():
    """
    logout: clears the account's refresh token
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Successfully logged out
      401:
        description: Unauthorized
    """
    return jsonify(_service().logout(g.current_account_id)), 200
