"""
Authentication blueprint:
- POST   /auth/signup
- POST   /auth/login
- POST   /auth/refresh
- POST   /auth/logout
- DELETE /auth/signout
- PATCH  /auth/password
- GET    /auth/me
- GET    /auth/sessions

The implementation:
- Uses argon2 for password hashing (via utils.security)
- Issues a short-lived access token (JWT, HS256) and a long-lived opaque refresh token
- Both travel as httpOnly cookies; the access token is also returned in the body
  for clients that prefer the Authorization header
- Refresh tokens are single-use: every refresh rotates them
"""
from __future__ import annotations

from flask import Blueprint, Response, current_app, g, jsonify, request

from api.errors import error_response
from models.schemas.session import RefreshSessionOutSchema
from models.schemas.user import (
    ChangePasswordSchema,
    DeleteAccountSchema,
    UserCreateSchema,
    UserLoginSchema,
    UserOutSchema,
)
from services.errors import Unauthorized
from services.session_service import IssuedCredentials, SessionService
from utils.decorators import get_auth_component, jwt_required, refresh_token_required

bp = Blueprint("auth", __name__)

user_create_schema = UserCreateSchema()
user_login_schema = UserLoginSchema()
delete_account_schema = DeleteAccountSchema()
change_password_schema = ChangePasswordSchema()
user_out_schema = UserOutSchema()
sessions_out_schema = RefreshSessionOutSchema(many=True)


def _service() -> SessionService:
    return get_auth_component("session_service")


def _client_meta() -> tuple[str | None, str | None]:
    return request.headers.get("User-Agent"), request.remote_addr


def _refresh_cookie_path() -> str:
    return f"{current_app.config['API_PREFIX'].rstrip('/')}/auth/refresh"


def _cookie_options(path: str) -> dict:
    return {
        "httponly": True,
        "secure": current_app.config["COOKIE_SECURE"],
        "samesite": "Strict",
        "path": path,
    }


def set_auth_cookies(response: Response, creds: IssuedCredentials) -> Response:
    cfg = current_app.config
    response.set_cookie(
        cfg["ACCESS_COOKIE_NAME"],
        creds.access_token,
        max_age=int(cfg["ACCESS_TOKEN_EXPIRES"].total_seconds()),
        **_cookie_options("/"),
    )
    response.set_cookie(
        cfg["REFRESH_COOKIE_NAME"],
        creds.refresh_session.token,
        max_age=int(cfg["REFRESH_TOKEN_EXPIRES"].total_seconds()),
        # Only ever sent to the refresh endpoint
        **_cookie_options(_refresh_cookie_path()),
    )
    return response


def clear_auth_cookies(response: Response) -> Response:
    """Overwrite both cookies with an empty value and an epoch expiry."""
    cfg = current_app.config
    response.delete_cookie(cfg["ACCESS_COOKIE_NAME"], **_cookie_options("/"))
    response.delete_cookie(cfg["REFRESH_COOKIE_NAME"], **_cookie_options(_refresh_cookie_path()))
    return response


def _auth_response(creds: IssuedCredentials, status: int = 201) -> Response:
    response = jsonify({"token": creds.access_token, "user": user_out_schema.dump(creds.user)})
    response.status_code = status
    return set_auth_cookies(response, creds)


@bp.post("/signup")
def signup():
    """
    Register a new user.
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
          required: [email, password, nickname]
          properties:
            email: { type: string }
            password: { type: string, minLength: 8 }
            nickname: { type: string }
            image_url: { type: string }
    responses:
      201:
        description: Created
      400:
        description: Validation error
      409:
        description: Email already registered
    """
    payload = request.get_json(silent=True) or {}
    data = user_create_schema.load(payload)
    user = _service().sign_up(data["email"], data["password"], data["nickname"], data.get("image_url"))
    return jsonify({"data": user_out_schema.dump(user)}), 201


@bp.post("/login")
def login():
    """
    Login: returns the access token and sets the access and refresh cookies
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
           required: [email, password]
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      201:
        description: Logged in (token + user, cookies set)
      400:
        description: Validation error
      401:
        description: Invalid credentials
    """
    payload = request.get_json(silent=True) or {}
    data = user_login_schema.load(payload)
    user_agent, ip_address = _client_meta()
    creds = _service().login(data["email"], data["password"], user_agent, ip_address)
    return _auth_response(creds)


@bp.post("/refresh")
@refresh_token_required()
def refresh():
    """
    Redeem the refresh cookie for a new access token and a new refresh token (rotation)
    ---
    tags:
      - Auth
    responses:
      201:
        description: New token + user, cookies replaced
      401:
        description: Refresh cookie missing, invalid, expired or already used
    """
    user_agent, ip_address = _client_meta()
    try:
        creds = _service().refresh(g.refresh_token, user_agent, ip_address)
    except Unauthorized as err:
        response, status = error_response(err.code, err.message, err.status)
        response.status_code = status
        return clear_auth_cookies(response)
    return _auth_response(creds)


@bp.post("/logout")
@jwt_required()
def logout():
    """
    Logout: blacklists the access token, revokes its refresh session, clears cookies
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Logged out
      401:
        description: Unauthorized
    """
    _service().logout(g.access_token)
    response = jsonify({"message": "Logged out successfully"})
    return clear_auth_cookies(response)


@bp.delete("/signout")
@jwt_required()
def signout():
    """
    Delete the current account (password confirmation required)
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
           required: [password]
           properties:
             password: { type: string }
    responses:
      200:
        description: Account deleted
      400:
        description: Validation error
      401:
        description: Wrong password
    """
    payload = request.get_json(silent=True) or {}
    data = delete_account_schema.load(payload)
    service = _service()
    service.delete_account(g.current_user.id, data["password"])
    service.logout(g.access_token)
    response = jsonify({"message": "Account deleted successfully"})
    return clear_auth_cookies(response)


@bp.patch("/password")
@jwt_required()
def change_password():
    """
    Change password; every session of the user ends and cookies are cleared
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
           required: [current_password, new_password]
           properties:
             current_password: { type: string }
             new_password: { type: string, minLength: 8 }
    responses:
      200:
        description: Password changed
      400:
        description: Validation error
      401:
        description: Wrong current password
    """
    payload = request.get_json(silent=True) or {}
    data = change_password_schema.load(payload)
    service = _service()
    service.change_password(g.current_user.id, data["current_password"], data["new_password"])
    service.logout(g.access_token)
    response = jsonify({"success": True})
    return clear_auth_cookies(response)


@bp.get("/me")
@jwt_required()
def me():
    """
    Current user profile
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
    return jsonify({"data": user_out_schema.dump(g.current_user)}), 200


@bp.get("/sessions")
@jwt_required()
def sessions():
    """
    Active refresh sessions of the current user
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
    active = _service().active_sessions(g.current_user.id)
    data = sessions_out_schema.dump(active)
    for item in data:
        item["current"] = item["id"] == g.session_id
    return jsonify({"data": data}), 200
