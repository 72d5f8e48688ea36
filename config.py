import logging
import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Application environment
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
DEBUG = ENVIRONMENT == "development"

# Database settings
DATABASE_URL = os.getenv("DATABASE_URL")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Application settings
APP_NAME = "Bookmatch API"
APP_VERSION = "1.0.0"

# Client application that receives payment redirects
CLIENT_APP_URL = os.getenv("CLIENT_APP_URL", "http://localhost:3000")

# Descope settings
DESCOPE_PROJECT_ID = os.getenv("DESCOPE_PROJECT_ID", "")
DESCOPE_JWT_LEEWAY = int(os.getenv("DESCOPE_JWT_LEEWAY", "60"))  # seconds of clock-skew tolerance

# Fernet key for contact handles at rest
ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY", "")

# Weekly cycle settings
CYCLE_TIMEZONE = os.getenv("CYCLE_TIMEZONE", "Asia/Seoul")

# Match request settings
MATCH_LETTER_MAX_LENGTH = int(os.getenv("MATCH_LETTER_MAX_LENGTH", "500"))

# Contact unlock pricing (KRW, no minor units)
UNLOCK_PRICE_FULL = int(os.getenv("UNLOCK_PRICE_FULL", "19800"))
UNLOCK_PRICE_DISCOUNTED = int(os.getenv("UNLOCK_PRICE_DISCOUNTED", "9900"))
UNLOCK_CLAIM_TTL_SECONDS = int(os.getenv("UNLOCK_CLAIM_TTL_SECONDS", "600"))

# NicePay settings
NICEPAY_API_BASE_URL = os.getenv("NICEPAY_API_BASE_URL", "https://sandbox-api.nicepay.co.kr")
NICEPAY_CLIENT_ID = os.getenv("NICEPAY_CLIENT_ID", "")
NICEPAY_SECRET_KEY = os.getenv("NICEPAY_SECRET_KEY", "")
NICEPAY_TIMEOUT_SECONDS = float(os.getenv("NICEPAY_TIMEOUT_SECONDS", "10"))

# OneSignal Settings
ONESIGNAL_ENABLED = os.getenv("ONESIGNAL_ENABLED", "true").lower() == "true"
ONESIGNAL_APP_ID = os.getenv("ONESIGNAL_APP_ID", "")
ONESIGNAL_REST_API_KEY = os.getenv("ONESIGNAL_REST_API_KEY", "")

logging.info(
    f"Unlock pricing configured: full={UNLOCK_PRICE_FULL}, discounted={UNLOCK_PRICE_DISCOUNTED}"
)
