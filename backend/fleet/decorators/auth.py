from functools import wraps
from typing import Optional
from flask import abort
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity
from fleet.services.policy import has_permissions


def require_permissions(*codes: str):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if not has_permissions(*codes):
                abort(403, description='Missing permission')
            return fn(*args, **kwargs)
        return wrapper
    return outer


def current_actor_id() -> Optional[int]:
    """User id of the verified token, None when it cannot be resolved."""
    ident = get_jwt_identity()
    try:
        return int(ident) if ident is not None else None
    except (TypeError, ValueError):
        return None
