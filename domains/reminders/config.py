"""Reminders domain configuration - parsing, notification and storage constants."""

import os

# Notification channel (registered once at start-up)
CHANNEL_ID = "reminders"
CHANNEL_NAME = "Reminders"
CHANNEL_IMPORTANCE = "high"

# Notification content
TITLE_PREFIX = "Reminder: "
DEFAULT_BODY = "Time for your reminder!"

# Title used when nothing usable is left after parsing
FALLBACK_TITLE = "Reminder"

# Phrases that mark a reminder as repeating every day
DAILY_PHRASES = [
    "every day",
    "everyday",
    "daily",
    "every morning",
    "every evening",
    "every night",
    "each day",
]

# Standalone words stripped from fallback titles
TITLE_STOPWORDS = ["at", "on", "in", "for", "to"]

# Delivery webhook
WEBHOOK_TIMEOUT = float(os.environ.get("NOTIFY_WEBHOOK_TIMEOUT", "10"))

# Table name for the reminder rows
TABLE = "reminders"

# Delivered notifications kept tappable; oldest are dropped past this
DELIVERED_HISTORY = 200

# Longest relative offset accepted from text ("in N hours"), one year
MAX_RELATIVE_MINUTES = 366 * 24 * 60
