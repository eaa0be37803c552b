from __future__ import annotations
from functools import wraps
from flask import request, g, current_app
from security.guard import authorize_request, require_role


def jwt_required():
    """Run the access guard and attach the verified claims to `g.current_claims`."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            issuer = current_app.extensions["token_issuer"]
            g.current_claims = authorize_request(issuer, request.headers.get("Authorization"))
            return fn(*args, **kwargs)

        return wrapper

    return decorator

def roles_required(required_roles: list[str]):
    """
    Allow access if the caller's role is one of the required roles.
    Deny (403 INSUFFICIENT_ROLE) otherwise.
    """
    req = set(required_roles or [])
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            require_role(g.current_claims, req)
            return fn(*args, **kwargs)
        
        return wrapper
    
    return decorator
