"""HTTP surface for the reminders UI.

Run with: uvicorn reminder_api.main:app --port 8200
"""
