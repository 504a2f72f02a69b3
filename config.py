"""Global configuration for the Reminders service."""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Claude API - used as the primary natural-language reminder parser
ANTHROPIC_API_KEY = os.getenv("REMINDERS_CLAUDE_KEY")
CLAUDE_MODEL = os.getenv("CLAUDE_MODEL", "claude-sonnet-4-20250514")
CLAUDE_MAX_TOKENS = int(os.getenv("CLAUDE_MAX_TOKENS", "512"))

# Storage
DATA_DIR = Path(os.getenv("REMINDERS_DATA_DIR", Path(os.getenv("LOCALAPPDATA", ".")) / "reminders"))
REMINDERS_DB = os.getenv("REMINDERS_DB", str(DATA_DIR / "reminders.db"))

# Notifications
NOTIFICATIONS_ENABLED = os.getenv("NOTIFICATIONS_ENABLED", "1").lower() not in ("0", "false", "no")
NOTIFY_WEBHOOK_URL = os.getenv("NOTIFY_WEBHOOK_URL")

# HTTP surface
API_HOST = os.getenv("REMINDERS_API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("REMINDERS_API_PORT", "8200"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = DATA_DIR / "logs"
LOG_DIR.mkdir(parents=True, exist_ok=True)
