# routes.py
from flask import jsonify, Response, stream_with_context
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

import gateway
from config import (
    app, db, limiter, logger, LOGIN_RATE_LIMIT, LLM_DEFAULT_MODEL,
    DEFAULT_SESSION_TITLE, MAX_TITLE_CHARS, AUTO_TITLE_CHARS, MAX_ROLE_NAME_CHARS,
    MAX_INSTRUCTIONS_CHARS, MAX_MESSAGE_CHARS, MAX_MODEL_CHARS, MAX_USERNAME_CHARS,
    MAX_PASSWORD_CHARS,
)
from gateway import GatewayError
from models import Session, Message, Role, utcnow
from utils import (
    require_token, issue_token, check_credentials, json_body, text_fields,
    require_uuid, save_message, get_session_messages, history_for_llm, ValidationError,
)


def gateway_error_response(label, e):
    if e.connect_failed:
        return jsonify({"error": gateway.CONNECT_ERROR, "message": e.message}), 500
    return jsonify({"error": label, "details": e.details}), e.status_code


def sse_response(events):
    return Response(
        events,
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


def check_chat_body(body):
    errors = []
    model = body.get("model")
    if not isinstance(model, str) or not model.strip():
        errors.append({"field": "model", "msg": "is required"})
    if not isinstance(body.get("messages"), list):
        errors.append({"field": "messages", "msg": "must be a list"})
    if errors:
        raise ValidationError(errors)


# ---------- Public ----------

@app.route("/", methods=["GET"])
def home():
    return jsonify({
        "status": "ok",
        "message": "LLM chat gateway API running",
        "endpoints": {
            "/api/health": "Health check",
            "/api/login": "Issue a bearer token",
            "/api/models": "Models known to the LLM gateway",
            "/api/chat/completions": "Chat completion proxy",
            "/api/chat/completions/stream": "Streaming chat completion proxy (SSE)",
            "/api/sessions": "Chat sessions (token required)",
            "/api/roles": "Role presets (token required)",
        },
    })


@app.route("/api/health", methods=["GET"])
def health():
    return jsonify({"status": "OK", "timestamp": utcnow().isoformat()})


@app.route("/api/login", methods=["POST"])
@limiter.limit(LOGIN_RATE_LIMIT)
def login():
    data = json_body()
    fields = text_fields(data, [
        ("username", MAX_USERNAME_CHARS, True),
        ("password", MAX_PASSWORD_CHARS, True),
    ])
    if not check_credentials(fields["username"], fields["password"]):
        logger.warning("Failed login for %r", fields["username"])
        return jsonify({"error": "Invalid credentials"}), 401

    user = {"id": 1, "username": fields["username"], "role": "user"}
    return jsonify({"token": issue_token(user), "user": user})


@app.route("/api/models", methods=["GET"])
def list_models():
    logger.info("Fetching models from LLM gateway...")
    try:
        return jsonify(gateway.fetch_model_info())
    except GatewayError as e:
        logger.error("Error fetching models: %s", e.message)
        return gateway_error_response("Failed to fetch models", e)


@app.route("/api/chat/completions", methods=["POST"])
def proxy_chat_completion():
    body = json_body()
    check_chat_body(body)
    logger.info("Forwarding chat completion request to LLM gateway...")
    try:
        return jsonify(gateway.create_completion(body))
    except GatewayError as e:
        logger.error("Error in chat completion: %s", e.message)
        return gateway_error_response("Chat completion failed", e)


@app.route("/api/chat/completions/stream", methods=["POST"])
def proxy_chat_completion_stream():
    body = json_body()
    check_chat_body(body)
    logger.info("Forwarding streaming chat completion request to LLM gateway...")
    try:
        stream = gateway.open_completion_stream(body)
    except GatewayError as e:
        logger.error("Error in streaming chat completion: %s", e.message)
        return gateway_error_response("Streaming chat completion failed", e)
    return sse_response(gateway.relay(stream))


# ---------- Sessions ----------

def get_session_or_none(session_id):
    return db.session.get(Session, require_uuid(session_id))


@app.route("/api/sessions", methods=["GET"])
@require_token
def list_sessions():
    sessions = Session.query.order_by(Session.updated_at.desc()).all()
    return jsonify([s.to_dict() for s in sessions])


@app.route("/api/sessions", methods=["POST"])
@require_token
def create_session():
    fields = text_fields(json_body(), [("title", MAX_TITLE_CHARS, False)])
    try:
        s = Session(title=fields.get("title") or DEFAULT_SESSION_TITLE)
        db.session.add(s)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("❌ Failed to create session")
        return jsonify({"error": "Failed to create session"}), 500
    return jsonify(s.to_dict()), 201


@app.route("/api/sessions/<session_id>", methods=["GET"])
@require_token
def get_session(session_id):
    s = get_session_or_none(session_id)
    if not s:
        return jsonify({"error": "Session not found"}), 404
    return jsonify(s.to_dict())


@app.route("/api/sessions/<session_id>", methods=["PATCH"])
@require_token
def rename_session(session_id):
    s = get_session_or_none(session_id)
    fields = text_fields(json_body(), [("title", MAX_TITLE_CHARS, True)])
    if not s:
        return jsonify({"error": "Session not found"}), 404
    s.title = fields["title"]
    s.updated_at = utcnow()
    db.session.commit()
    return jsonify(s.to_dict())


@app.route("/api/sessions/<session_id>", methods=["DELETE"])
@require_token
def delete_session(session_id):
    s = get_session_or_none(session_id)
    if not s:
        return jsonify({"error": "Session not found"}), 404
    db.session.delete(s)
    db.session.commit()
    logger.info("Deleted session %s", session_id)
    return "", 204


@app.route("/api/sessions/<session_id>/messages", methods=["GET"])
@require_token
def session_messages(session_id):
    session_id = require_uuid(session_id)
    return jsonify([m.to_dict() for m in get_session_messages(session_id)])


@app.route("/api/sessions/<session_id>/chat/stream", methods=["POST"])
@require_token
def session_chat_stream(session_id):
    session_id = require_uuid(session_id)
    data = json_body()
    fields = text_fields(data, [
        ("message", MAX_MESSAGE_CHARS, True),
        ("model", MAX_MODEL_CHARS, False),
    ])
    role_id = data.get("role_id")
    if role_id is not None:
        role_id = require_uuid(role_id, "role_id")

    s = db.session.get(Session, session_id)
    if not s:
        return jsonify({"error": "Session not found"}), 404
    instructions = None
    if role_id:
        role = db.session.get(Role, role_id)
        if not role:
            return jsonify({"error": "Role not found"}), 404
        instructions = role.instructions

    message = fields["message"]
    save_message(s, "user", message)

    # first message names a still-untitled session
    if s.title == DEFAULT_SESSION_TITLE and Message.query.filter_by(session_id=s.id).count() == 1:
        s.title = message[:AUTO_TITLE_CHARS].strip() or DEFAULT_SESSION_TITLE
        db.session.commit()

    body = {
        "model": fields.get("model") or LLM_DEFAULT_MODEL,
        "messages": history_for_llm(s.id, instructions),
    }
    # release the connection; the upstream stream can run for a long time
    db.session.commit()

    try:
        stream = gateway.open_completion_stream(body)
    except GatewayError as e:
        logger.error("Error in session streaming: %s", e.message)
        return gateway_error_response("Session streaming failed", e)

    def save_reply(text):
        if not text.strip():
            return
        try:
            current = db.session.get(Session, session_id)
            if current is None:
                logger.info("Session %s deleted before reply finished", session_id)
                return
            save_message(current, "assistant", text)
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("❌ Failed to save assistant message")

    return sse_response(stream_with_context(gateway.relay(stream, on_finish=save_reply)))


# ---------- Roles ----------

def get_role_or_none(role_id):
    return db.session.get(Role, require_uuid(role_id))


@app.route("/api/roles", methods=["GET"])
@require_token
def list_roles():
    roles = Role.query.order_by(Role.name.asc()).all()
    return jsonify([r.to_dict() for r in roles])


@app.route("/api/roles", methods=["POST"])
@require_token
def create_role():
    fields = text_fields(json_body(), [
        ("name", MAX_ROLE_NAME_CHARS, True),
        ("instructions", MAX_INSTRUCTIONS_CHARS, True),
    ])
    role = Role(name=fields["name"], instructions=fields["instructions"])
    db.session.add(role)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "Role name already exists"}), 409
    return jsonify(role.to_dict()), 201


@app.route("/api/roles/<role_id>", methods=["GET"])
@require_token
def get_role(role_id):
    role = get_role_or_none(role_id)
    if not role:
        return jsonify({"error": "Role not found"}), 404
    return jsonify(role.to_dict())


@app.route("/api/roles/<role_id>", methods=["PUT"])
@require_token
def update_role(role_id):
    role = get_role_or_none(role_id)
    fields = text_fields(json_body(), [
        ("name", MAX_ROLE_NAME_CHARS, False),
        ("instructions", MAX_INSTRUCTIONS_CHARS, False),
    ])
    if not fields:
        return jsonify({"error": "Nothing to update"}), 400
    if not role:
        return jsonify({"error": "Role not found"}), 404
    for key, value in fields.items():
        setattr(role, key, value)
    role.updated_at = utcnow()
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "Role name already exists"}), 409
    return jsonify(role.to_dict())


@app.route("/api/roles/<role_id>", methods=["DELETE"])
@require_token
def delete_role(role_id):
    role = get_role_or_none(role_id)
    if not role:
        return jsonify({"error": "Role not found"}), 404
    db.session.delete(role)
    db.session.commit()
    return "", 204
