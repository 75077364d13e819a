from __future__ import annotations
from functools import wraps
from flask import current_app, request, g
from services.errors import Unauthorized
from utils.extractors import extract_access_token, extract_refresh_token


def get_auth_component(name: str):
    """Components built by create_app live in app.extensions["auth"]."""
    return current_app.extensions["auth"][name]


def jwt_required():
    """Guard a route with the access token from the Authorization header or cookie."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = extract_access_token(request, current_app.config["ACCESS_COOKIE_NAME"])
            principal = get_auth_component("authenticator").authenticate(token)
            g.current_user = principal.user
            g.access_token = principal.token
            g.token_claims = principal.claims
            g.session_id = principal.session_id
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def refresh_token_required():
    """
    Only checks that a refresh cookie is present; whether it is still
    redeemable is decided by SessionService.refresh.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = extract_refresh_token(request, current_app.config["REFRESH_COOKIE_NAME"])
            if not token:
                raise Unauthorized()
            g.refresh_token = token
            return fn(*args, **kwargs)

        return wrapper

    return decorator
