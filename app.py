# app.py - LLM chat gateway backend
from flask import jsonify, request
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from config import app, db, logger, PORT
from utils import ValidationError
import routes  # noqa: F401  registers the endpoints on `app`

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Content-Security-Policy": (
        "default-src 'self'; style-src 'self' 'unsafe-inline'; "
        "script-src 'self'; img-src 'self' data: https:"
    ),
}


@app.before_request
def log_request():
    logger.debug("Incoming request: %s %s Origin: %s", request.method, request.path, request.headers.get("Origin"))


@app.after_request
def add_security_headers(response):
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


# ---------- Error handlers ----------

@app.errorhandler(ValidationError)
def handle_validation_error(e):
    return jsonify({"error": "Validation failed", "errors": e.errors}), 400


@app.errorhandler(IntegrityError)
def handle_integrity_error(e):
    db.session.rollback()
    logger.warning("Database integrity error: %s", e.orig)
    return jsonify({"error": "Conflict with existing data"}), 409


@app.errorhandler(404)
def handle_not_found(e):
    return jsonify({"error": "Not found"}), 404


@app.errorhandler(405)
def handle_method_not_allowed(e):
    return jsonify({"error": "Method not allowed"}), 405


@app.errorhandler(413)
def handle_too_large(e):
    return jsonify({"error": "Request body too large"}), 413


@app.errorhandler(429)
def handle_rate_limited(e):
    return jsonify({"error": "Too many requests", "message": str(e.description)}), 429


@app.errorhandler(Exception)
def handle_unexpected(e):
    if isinstance(e, HTTPException):
        return jsonify({"error": e.name}), e.code
    db.session.rollback()
    logger.exception("❌ Unhandled error:")
    return jsonify({"error": "Internal Server Error"}), 500


# create tables
with app.app_context():
    db.create_all()

# ---------- Run ----------
if __name__ == "__main__":
    # For local testing only; in production use gunicorn: `gunicorn app:app --bind 0.0.0.0:$PORT --workers 2`
    app.run(host="0.0.0.0", port=PORT, threaded=True)
