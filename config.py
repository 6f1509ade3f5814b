import os
from dotenv import load_dotenv

load_dotenv()


def _int_env(name, default):
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


USAGE_DB_FILE = os.getenv(
    "USAGE_DB_FILE",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "data", "usage.db"),
)

# Call limits per remote service
THROTTLE_MAX_PER_MINUTE = _int_env("THROTTLE_MAX_PER_MINUTE", 20)
THROTTLE_MAX_PER_MONTH  = _int_env("THROTTLE_MAX_PER_MONTH", 30000)

# Window limiter
THROTTLE_WINDOW_SECONDS        = _int_env("THROTTLE_WINDOW_SECONDS", 60)
THROTTLE_WINDOW_MARGIN_SECONDS = _int_env("THROTTLE_WINDOW_MARGIN_SECONDS", 5)
THROTTLE_LONG_DELAY_SECONDS    = _int_env("THROTTLE_LONG_DELAY_SECONDS", 10)

# Retry classifier
THROTTLE_MAX_RETRIES      = _int_env("THROTTLE_MAX_RETRIES", 3)
THROTTLE_COOLDOWN_SECONDS = _int_env("THROTTLE_COOLDOWN_SECONDS", 30)

# Once a day by default
USAGE_FLUSH_INTERVAL_SECONDS = _int_env("USAGE_FLUSH_INTERVAL_SECONDS", 86400)

# Adapters
GEMINI_API_KEY    = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL      = os.getenv("GEMINI_MODEL", "gemini-2.5-flash-lite")
FACE_API_ENDPOINT = os.getenv("FACE_API_ENDPOINT")
FACE_API_KEY      = os.getenv("FACE_API_KEY")
