import os
import sys

from dotenv import load_dotenv

from enums.currency import Currency
from enums.runtime_environment import RuntimeEnvironment

# Load .env but don't override existing environment variables
# This allows test scripts to set RUNTIME_ENVIRONMENT=TEST before import
load_dotenv(".env", override=False)

# Parse RUNTIME_ENVIRONMENT with clear error message on misconfiguration
try:
    RUNTIME_ENVIRONMENT = RuntimeEnvironment(os.environ.get("RUNTIME_ENVIRONMENT", "DEV"))
except ValueError as e:
    valid_values = [env.value for env in RuntimeEnvironment]
    print(f"\n ERROR: Invalid RUNTIME_ENVIRONMENT configuration\n", file=sys.stderr)
    print(f"Reason: {e}", file=sys.stderr)
    print(f"Valid values: {', '.join(valid_values)}", file=sys.stderr)
    print(f"Current value: {os.environ.get('RUNTIME_ENVIRONMENT', '(not set)')}", file=sys.stderr)
    print(f"\nAdd to .env: RUNTIME_ENVIRONMENT={valid_values[0]}\n", file=sys.stderr)
    sys.exit(1)

WEBAPP_HOST = os.environ.get("WEBAPP_HOST", "0.0.0.0")
WEBAPP_PORT = int(os.environ.get("WEBAPP_PORT", "8000"))
BASE_URL = os.environ.get("BASE_URL", "http://localhost:8000").rstrip("/")

# Storage
DB_URL = os.environ.get("DB_URL", "sqlite+aiosqlite:///data/shop.db")
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

# Cart Configuration
CART_TTL_SECONDS = int(os.environ.get("CART_TTL_SECONDS", str(7 * 24 * 60 * 60)))  # Default: 7 days
CART_MAX_QUANTITY = int(os.environ.get("CART_MAX_QUANTITY", "10"))
SESSION_COOKIE_NAME = os.environ.get("SESSION_COOKIE_NAME", "session_id")
SESSION_COOKIE_SECURE = os.environ.get("SESSION_COOKIE_SECURE", "false") == "true"

# Parse TAX_RATE with error handling
try:
    TAX_RATE = float(os.environ.get("TAX_RATE", "0.08"))
    if not 0 <= TAX_RATE < 1:
        raise ValueError(f"TAX_RATE must be between 0 and 1 (got: {TAX_RATE})")
except ValueError as e:
    print(f"\n ERROR: Invalid TAX_RATE configuration\n", file=sys.stderr)
    print(f"Reason: {e}", file=sys.stderr)
    print(f"Expected: Decimal fraction (e.g., 0.08 for 8%)", file=sys.stderr)
    print(f"Current value: {os.environ.get('TAX_RATE', '(not set)')}\n", file=sys.stderr)
    sys.exit(1)

# Parse CURRENCY with error handling
try:
    CURRENCY = Currency(os.environ.get("CURRENCY", "USD"))
except ValueError as e:
    valid_currencies = [c.value for c in Currency]
    print(f"\n ERROR: Invalid CURRENCY configuration\n", file=sys.stderr)
    print(f"Reason: {e}", file=sys.stderr)
    print(f"Valid values: {', '.join(valid_currencies)}", file=sys.stderr)
    print(f"Current value: {os.environ.get('CURRENCY', '(not set)')}", file=sys.stderr)
    print(f"\nAdd to .env: CURRENCY={valid_currencies[0]}\n", file=sys.stderr)
    sys.exit(1)

# Stripe
STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY", "")
STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET", "")
# "fake" skips Stripe entirely (local development without credentials)
PAYMENT_GATEWAY = os.environ.get("PAYMENT_GATEWAY", "stripe")
# Hosted checkout pages expire after this long (Stripe accepts 30 minutes to 24 hours)
CHECKOUT_SESSION_EXPIRY_MINUTES = int(os.environ.get("CHECKOUT_SESSION_EXPIRY_MINUTES", "30"))

# Notifications
RESEND_API_KEY = os.environ.get("RESEND_API_KEY", "")
EMAIL_FROM = os.environ.get("EMAIL_FROM", "orders@example.com")
TWILIO_ACCOUNT_SID = os.environ.get("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN = os.environ.get("TWILIO_AUTH_TOKEN", "")
TWILIO_WHATSAPP_FROM = os.environ.get("TWILIO_WHATSAPP_FROM", "")
ADMIN_WHATSAPP_NUMBERS = [
    number.strip() for number in os.environ.get("ADMIN_WHATSAPP_NUMBERS", "").split(",") if number.strip()
]
NOTIFICATION_TIMEOUT_SECONDS = int(os.environ.get("NOTIFICATION_TIMEOUT_SECONDS", "10"))

# Order Cleanup Configuration
STALE_ORDER_MINUTES = int(os.environ.get("STALE_ORDER_MINUTES", "60"))  # Pending orders without intent id
BACKGROUND_TASK_INTERVAL_SECONDS = int(os.environ.get("BACKGROUND_TASK_INTERVAL_SECONDS", "300"))

# Rate Limiting Configuration
MAX_CHECKOUTS_PER_SESSION_PER_HOUR = int(os.environ.get("MAX_CHECKOUTS_PER_SESSION_PER_HOUR", "10"))
MAX_CART_UPDATES_PER_MINUTE = int(os.environ.get("MAX_CART_UPDATES_PER_MINUTE", "60"))

# Logging Configuration
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR, CRITICAL
LOG_MASK_SECRETS = os.environ.get("LOG_MASK_SECRETS", "true") == "true"  # Mask sensitive data in logs

# Log Retention: Environment-specific defaults
if RUNTIME_ENVIRONMENT == RuntimeEnvironment.DEV:
    LOG_RETENTION_DAYS = int(os.environ.get("LOG_RETENTION_DAYS", "30"))
else:
    LOG_RETENTION_DAYS = int(os.environ.get("LOG_RETENTION_DAYS", "5"))
