"""
Refresh-token cookie transport.

The cookie is HttpOnly, SameSite=Strict, Secure outside development, and
scoped to the whole API surface (path "/") so every route that needs it,
rotation and logout included, receives it.
"""
from flask import current_app, request


def _cookie_options():
    cfg = current_app.config
    return {
        "path": cfg.get("REFRESH_COOKIE_PATH", "/"),
        "secure": cfg.get("REFRESH_COOKIE_SECURE", True),
        "httponly": True,
        "samesite": cfg.get("REFRESH_COOKIE_SAMESITE", "Strict"),
    }


def read_refresh_cookie():
    return request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"])


def set_refresh_cookie(response, token: str):
    max_age = int(current_app.config["REFRESH_TOKEN_EXPIRES"].total_seconds())
    response.set_cookie(current_app.config["REFRESH_COOKIE_NAME"], token, max_age=max_age, **_cookie_options())
    return response


def clear_refresh_cookie(response):
    response.delete_cookie(current_app.config["REFRESH_COOKIE_NAME"], **_cookie_options())
    return response
