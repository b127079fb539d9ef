# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g


ACTOR_HEADER = "X-User-Id"


def require_actor(f):
    """
    Establish the acting user for attribution.

    Identity is owned by the upstream identity provider, which forwards the
    authenticated user id in the X-User-Id header. Sets g.actor_id (int).

    Returns 401 if the header is missing, 400 if it is not a positive integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get(ACTOR_HEADER)
        if raw is None or not raw.strip():
            return jsonify({"error": f"{ACTOR_HEADER} header required"}), 401

        raw = raw.strip()
        if not raw.isdigit() or int(raw) <= 0:
            return jsonify({"error": f"{ACTOR_HEADER} must be a positive integer"}), 400

        g.actor_id = int(raw)
        return f(*args, **kwargs)

    return decorated_function
