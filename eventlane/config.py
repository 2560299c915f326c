import os
from dotenv import load_dotenv

load_dotenv()

ENV = os.getenv("ENV", "development")

# Logging; an empty LOG_FILE logs to the console only
LOG_FILE = os.getenv("LOG_FILE", "app.log")
LOG_LEVEL = os.getenv("LOG_LEVEL", "")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./eventlane.db")

# Auth
SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))

# Calendar day boundaries ("today") are taken in this zone
APP_TIMEZONE = os.getenv("APP_TIMEZONE", "UTC")

# Booking rules
PENDING_SLA_HOURS = int(os.getenv("PENDING_SLA_HOURS", "72"))
RESERVATION_FEE_PERCENT = int(os.getenv("RESERVATION_FEE_PERCENT", "10"))
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "PHP")

# Availability check: allow the action when the overlap procedure is unavailable
AVAILABILITY_FAIL_OPEN = os.getenv("AVAILABILITY_FAIL_OPEN", "true").lower() == "true"

# Database procedures that are installed and callable
ENABLED_PROCEDURES = {
    name.strip()
    for name in os.getenv(
        "ENABLED_PROCEDURES", "check_booking_overlap,request_booking_change"
    ).split(",")
    if name.strip()
}

# Access policy: guests may write pending_changes/needs_owner_approval on confirmed bookings
GUEST_MAY_FLAG_CHANGES = os.getenv("GUEST_MAY_FLAG_CHANGES", "true").lower() == "true"

# Realtime re-fetch retry
HYDRATE_MAX_ATTEMPTS = int(os.getenv("HYDRATE_MAX_ATTEMPTS", "4"))
HYDRATE_BASE_DELAY_SECONDS = float(os.getenv("HYDRATE_BASE_DELAY_SECONDS", "0.5"))

# Messaging
MESSAGE_PAGE_SIZE = int(os.getenv("MESSAGE_PAGE_SIZE", "30"))

# Owner dashboard
DASHBOARD_UPCOMING_LIMIT = int(os.getenv("DASHBOARD_UPCOMING_LIMIT", "5"))
