# utils.py
import datetime
import uuid
from functools import wraps

import jwt
from flask import request, jsonify, g

from config import (
    db, logger, JWT_SECRET, JWT_EXPIRES_HOURS, AUTH_USERNAME, AUTH_PASSWORD,
)
from models import Message, utcnow


# ---------- Auth ----------

def issue_token(user):
    payload = dict(user)
    payload["exp"] = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(hours=JWT_EXPIRES_HOURS)
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


def check_credentials(username, password):
    """Without AUTH_USERNAME/AUTH_PASSWORD any non-empty pair is accepted."""
    if not AUTH_USERNAME and not AUTH_PASSWORD:
        return True
    return username == AUTH_USERNAME and password == AUTH_PASSWORD


def bearer_token():
    header = request.headers.get("Authorization", "")
    parts = header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def require_token(func):
    @wraps(func)
    def wrapped(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Access token required"}), 401
        try:
            g.user = jwt.decode(token, JWT_SECRET, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            logger.debug("Rejected token: %s", e)
            return jsonify({"error": "Invalid or expired token"}), 403
        return func(*args, **kwargs)
    return wrapped


# ---------- Validation ----------

class ValidationError(Exception):
    def __init__(self, errors):
        super().__init__("Validation failed")
        self.errors = errors


def json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def is_uuid(value):
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def require_uuid(value, field="id"):
    if not is_uuid(value):
        raise ValidationError([{"field": field, "msg": "must be a UUID", "value": value}])
    return str(uuid.UUID(str(value)))


def text_fields(data, rules):
    """
    Trim and length-check string fields of a request body.

    `rules` is a list of (field, max_len, required). Returns a dict of the
    cleaned values present in the body; raises ValidationError listing every
    problem found.
    """
    cleaned, errors = {}, []
    for field, max_len, required in rules:
        value = data.get(field)
        if value is None:
            if required:
                errors.append({"field": field, "msg": "is required"})
            continue
        if not isinstance(value, str):
            errors.append({"field": field, "msg": "must be a string"})
            continue
        value = value.strip()
        if not 1 <= len(value) <= max_len:
            errors.append({"field": field, "msg": f"must be 1-{max_len} characters"})
            continue
        cleaned[field] = value
    if errors:
        raise ValidationError(errors)
    return cleaned


# ---------- Messages ----------

def save_message(session, role, content):
    msg = Message(session_id=session.id, role=role, content=content)
    session.updated_at = utcnow()
    db.session.add(msg)
    db.session.commit()
    return msg


def get_session_messages(session_id):
    return (
        Message.query.filter_by(session_id=session_id)
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )


def history_for_llm(session_id, instructions=None):
    messages = []
    if instructions:
        messages.append({"role": "system", "content": instructions})
    for m in get_session_messages(session_id):
        role = m.role if m.role in {"user", "assistant", "system"} else "user"
        messages.append({"role": role, "content": m.content})
    return messages
