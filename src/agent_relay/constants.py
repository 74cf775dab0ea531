"""Shared constants for Agent Relay."""

import os
from pathlib import Path


HOME_DIR = Path(os.getenv("RELAY_HOME", str(Path.home() / ".agent-relay"))).expanduser()
LOG_DIR = HOME_DIR / "logs"
DB_DIR = HOME_DIR / "db"
DB_FILE = DB_DIR / "relay.db"
SPECIAL_AGENTS_DIR = HOME_DIR / "special-agents"

SERVER_HOST = os.getenv("RELAY_HOST", "127.0.0.1")
SERVER_PORT = int(os.getenv("RELAY_PORT", "9890"))
API_BASE = os.getenv("RELAY_API_URL", f"http://{SERVER_HOST}:{SERVER_PORT}")
API_KEY_ENV_VAR = "RELAY_API_KEY"
API_KEY_HEADER = "x-api-key"

COGNITION_BASE_URL = os.getenv("RELAY_COGNITION_URL", "https://openrouter.ai/api/v1")
COGNITION_API_KEY = os.getenv("RELAY_COGNITION_API_KEY")
COGNITION_TIMEOUT_SECONDS = float(os.getenv("RELAY_COGNITION_TIMEOUT", "60"))
REPLY_TIMEOUT_SECONDS = float(os.getenv("RELAY_REPLY_TIMEOUT", "90"))

DM_USERNAME = "DM"
REPLY_CONTEXT_MESSAGES = 10
APOLOGY_REPLY = "I'm sorry, I'm experiencing some technical difficulties. Please try again later."

DEFAULT_HISTORY_LIMIT = 50
MAX_HISTORY_LIMIT = 100
DEFAULT_INBOX_LIMIT = 20
MAX_INBOX_LIMIT = 50
