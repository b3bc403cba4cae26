from flask import Blueprint, current_app

from services.errors import Unavailable

bp = Blueprint("health", __name__)

@bp.get("/health")
def health():
    """
    Health check
    ---
    tags:
      - Health
    responses:
      200:
        description: API is up and storage answers
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            storage:
              type: string
              example: ok
            version:
              type: string
              example: 1.0.0
      503:
        description: Storage unreachable
    """
    store = current_app.extensions["account_store"]
    try:
        reachable = store.ping()
    except Unavailable:
        reachable = False
    if not reachable:
        return {"status": "degraded", "storage": "unavailable", "version": "1.0.0"}, 503
    return {"status": "ok", "storage": "ok", "version": "1.0.0"}, 200
