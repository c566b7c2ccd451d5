from functools import wraps
from flask import request, jsonify, g

LEARNER_HEADER = "X-Learner-Id"

def learner_required(f):
    """Read the learner id the upstream auth layer put on the request."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        learner_id = (request.headers.get(LEARNER_HEADER) or "").strip()
        if not learner_id:
            return jsonify({"error": "Unauthorized"}), 401

        g.learner_id = learner_id
        return f(*args, **kwargs)

    return decorated_function
