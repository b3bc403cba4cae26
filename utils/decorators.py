from __future__ import annotations
from functools import wraps
from flask import request, g, abort, current_app
from utils.security import TokenError


def jwt_required():
    """
    Require a valid bearer access token. Validity is signature + expiry only;
    no account lookup happens here. Sets g.current_account_id and g.current_claims.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = request.headers.get("Authorization", "")
            if not auth.startswith("Bearer "):
                abort(401, description="Missing or invalid Authorization header")
            token = auth.split(" ", 1)[1].strip()
            issuer = current_app.extensions["token_issuer"]
            try:
                decoded = issuer.verify(token, expected_type="access")
            except TokenError as e:
                abort(401, description=str(e))

            g.current_account_id = decoded["sub"]
            g.current_claims = decoded
            return fn(*args, **kwargs)

        return wrapper

    return decorator
