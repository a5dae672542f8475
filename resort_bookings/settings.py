import os

db_url = os.environ.get("DB_URL", "sqlite://:memory:")
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

# Calendar days (today, past dates) are evaluated in the resort's local time
RESORT_TIMEZONE = os.environ.get("RESORT_TIMEZONE", "UTC")

STATUS_CHANGE_MAX_ATTEMPTS = int(os.environ.get("STATUS_CHANGE_MAX_ATTEMPTS", "3"))
AVAILABILITY_CACHE_TTL = int(os.environ.get("AVAILABILITY_CACHE_TTL", "300"))
