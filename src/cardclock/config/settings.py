import os

def strtobool(val):
    """Convert a string representation of truth to true (1) or false (0)."""
    val = val.lower()
    if val in ('y', 'yes', 't', 'true', 'on', '1'):
        return 1
    elif val in ('n', 'no', 'f', 'false', 'off', '0'):
        return 0
    else:
        raise ValueError(f"invalid truth value {val!r}")

SECRET_KEY = os.getenv("SECRET_KEY", "default-secret-key-for-desktop-app")
DEBUG = bool(strtobool(os.getenv("FLASK_DEBUG", "false")))

LOG_FILE_SIZE = os.getenv("LOG_FILE_SIZE", "10485760")

# Hot-plug polling and settle delays
DEVICE_POLL_INTERVAL = float(os.getenv("DEVICE_POLL_INTERVAL", "2"))
ATTACH_SETTLE_MS = int(os.getenv("ATTACH_SETTLE_MS", "500"))
DETACH_SETTLE_MS = int(os.getenv("DETACH_SETTLE_MS", "300"))

# How long the UI should keep a transient notification on screen
NOTIFICATION_TTL = int(os.getenv("NOTIFICATION_TTL", "3"))

# Run the HTTP API without touching serial hardware
DISABLE_READER = bool(strtobool(os.getenv("CARDCLOCK_DISABLE_READER", "false")))
