# --- storefront/utils/api.py ---
from datetime import datetime, timezone

from flask import get_flashed_messages

def _stamp():
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%d %H:%M:%S")

def pending_messages():
    return [
        {"category": category, "message": message}
        for category, message in get_flashed_messages(with_categories=True)
    ]

def api_ok(message, data=None):
    return {
        "status": True,
        "message": message,
        "data": {
            **(data or {}),
            "API_TIME_HUMAN": _stamp()
        }
    }

def api_error(message, data=None):
    return {
        "status": False,
        "message": message,
        "data": {
            **(data or {}),
            "API_TIME_HUMAN": _stamp()
        }
    }
