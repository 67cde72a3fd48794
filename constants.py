import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8080))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", 100))
HISTORY_REPLAY_LIMIT = int(os.getenv("HISTORY_REPLAY_LIMIT", 20))

REAPER_INTERVAL_SECONDS = float(os.getenv("REAPER_INTERVAL_SECONDS", 30 * 60))
ROOM_RETENTION_SECONDS = float(os.getenv("ROOM_RETENTION_SECONDS", 2 * 60 * 60))

SEND_TIMEOUT_SECONDS = float(os.getenv("SEND_TIMEOUT_SECONDS", 5))

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]
