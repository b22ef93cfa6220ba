"""Application settings, read from the environment (and a local .env file)."""
import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_PATH = os.getenv("DATABASE_PATH", "priorities.db")

# IANA timezone used to decide what "today" is and to evaluate cron schedules
APP_TIMEZONE = os.getenv("APP_TIMEZONE", "UTC")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:5174").split(",")
    if origin.strip()
]

ENABLE_SCHEDULER = os.getenv("ENABLE_SCHEDULER", "true").lower() in ("1", "true", "yes")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
RECOMMENDATION_MODEL = os.getenv("RECOMMENDATION_MODEL", "claude-sonnet-4-5")
RECOMMENDATION_MAX_TOKENS = int(os.getenv("RECOMMENDATION_MAX_TOKENS", "500"))

# How many days ahead "move to next day" may look for a free slot
RELOCATION_SEARCH_DAYS = int(os.getenv("RELOCATION_SEARCH_DAYS", "365"))

# Worry-time reminder fires at this local time when the day does not set one
DEFAULT_WORRY_TIME = os.getenv("DEFAULT_WORRY_TIME", "19:00")
