# config.py - configuration and setup

import os
import re
import logging
from urllib.parse import urlparse

from flask import Flask
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from openai import OpenAI
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# ==== LOGGING ====
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s | %(levelname)-8s | %(name)-12s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("chat_gateway")


def env_flag(name, default="false"):
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# ==== SETTINGS ====
PORT = int(os.getenv("PORT", 5000))
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///chats.db")

LLM_GATEWAY_URL = os.getenv("LLM_GATEWAY_URL", "http://localhost:4141").rstrip("/")
LLM_GATEWAY_API_KEY = os.getenv("LLM_GATEWAY_API_KEY", "")
LLM_DEFAULT_MODEL = os.getenv("LLM_DEFAULT_MODEL", "gpt-3.5-turbo")
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", 30))
MODELS_TIMEOUT = float(os.getenv("MODELS_TIMEOUT", 10))

JWT_SECRET = os.getenv("JWT_SECRET", "chat-gateway-dev-secret-change-me")
JWT_EXPIRES_HOURS = float(os.getenv("JWT_EXPIRES_HOURS", 24))
AUTH_USERNAME = os.getenv("AUTH_USERNAME", "")
AUTH_PASSWORD = os.getenv("AUTH_PASSWORD", "")

CORS_ALLOW_ALL = env_flag("CORS_ALLOW_ALL")
ALLOWED_ORIGINS = [
    o.strip() for o in os.getenv(
        "ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173"
    ).split(",") if o.strip()
]

RATE_LIMIT = os.getenv("RATE_LIMIT", "120 per minute")
LOGIN_RATE_LIMIT = os.getenv("LOGIN_RATE_LIMIT", "10 per minute")

# ==== CONSTANTS ====
DEFAULT_SESSION_TITLE = "New Chat"
MAX_TITLE_CHARS = 120
AUTO_TITLE_CHARS = 60
MAX_ROLE_NAME_CHARS = 100
MAX_INSTRUCTIONS_CHARS = 5000
MAX_MESSAGE_CHARS = 10000
MAX_MODEL_CHARS = 100
MAX_USERNAME_CHARS = 50
MAX_PASSWORD_CHARS = 100


def build_cors_origins(origins, allow_all=False):
    """
    Turn the configured origin list into Flask-CORS origin patterns.

    Each origin matches case-insensitively, and its hostname is also admitted
    on any port (http://host:3000 configured lets http://host:5173 through).
    """
    if allow_all:
        return "*"
    patterns = []
    for origin in origins:
        if origin == "*":
            return "*"
        patterns.append(re.compile("^" + re.escape(origin) + "$", re.IGNORECASE))
        host = urlparse(origin).hostname if "://" in origin else origin.split(":")[0]
        if host:
            patterns.append(re.compile(r"^https?://" + re.escape(host) + r"(:\d+)?$", re.IGNORECASE))
    return patterns


# ==== APP ====
app = Flask(__name__)
app.config["SQLALCHEMY_DATABASE_URI"] = DATABASE_URL
app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
app.config["MAX_CONTENT_LENGTH"] = int(os.getenv("MAX_CONTENT_LENGTH", 10 * 1024 * 1024))
app.config["RATELIMIT_ENABLED"] = env_flag("RATELIMIT_ENABLED", "true")
app.config["RATELIMIT_STORAGE_URI"] = os.getenv("RATELIMIT_STORAGE_URI", "memory://")

# credentials cannot be combined with a wildcard origin
CORS(
    app,
    resources={r"/*": {"origins": build_cors_origins(ALLOWED_ORIGINS, CORS_ALLOW_ALL)}},
    supports_credentials=not CORS_ALLOW_ALL,
)
logger.info("CORS allow_all=%s origins=%s", CORS_ALLOW_ALL, ALLOWED_ORIGINS)

# ==== DATABASE ====
db = SQLAlchemy(app)

# ==== RATE LIMITER ====
limiter = Limiter(get_remote_address, app=app, default_limits=[RATE_LIMIT])

# ==== LLM GATEWAY CLIENT ====
# The gateway may run without auth, but the SDK refuses an empty key.
client = OpenAI(
    api_key=LLM_GATEWAY_API_KEY or "no-key",
    base_url=f"{LLM_GATEWAY_URL}/v1",
    timeout=LLM_TIMEOUT,
    max_retries=0,
    default_headers={"x-litellm-api-key": LLM_GATEWAY_API_KEY} if LLM_GATEWAY_API_KEY else None,
)
logger.info("✅ LLM gateway client initialized (%s, key present: %s)", LLM_GATEWAY_URL, bool(LLM_GATEWAY_API_KEY))
