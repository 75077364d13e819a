from flask import Blueprint, current_app

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
        description: API is up
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            version:
              type: string
              example: 1.0.0
            revocation_backend:
              type: string
              example: memory
    """
    return {
        "status": "ok",
        "version": "1.0.0",
        "revocation_backend": current_app.config["REVOCATION_BACKEND"],
    }, 200
