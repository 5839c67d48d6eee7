# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

ACTOR_HEADER = "X-Actor"
MAX_ACTOR_LENGTH = 128


def require_actor(f):
    """
    Establish the acting user for the request.

    Identity is issued upstream; this layer only reads the X-Actor header
    and stores it on g.actor for the engine's audit fields.

    Returns 401 if the header is missing or blank.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor = (request.headers.get(ACTOR_HEADER) or "").strip()
        if not actor:
            return jsonify({"error": f"{ACTOR_HEADER} header required"}), 401
        if len(actor) > MAX_ACTOR_LENGTH:
            return jsonify({"error": f"{ACTOR_HEADER} must be at most {MAX_ACTOR_LENGTH} characters"}), 400

        g.actor = actor
        return f(*args, **kwargs)

    return decorated_function
