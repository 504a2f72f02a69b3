"""Domain modules for the reminders service."""
