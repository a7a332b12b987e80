import os
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.environ.get("SOLAR_LEDGER_CONFIG", os.path.join(ROOT_PATH, "env.yaml"))

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file) or dict()
else:
    data = dict()


class ApplicationConfig:
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./solar_ledger.db")
    MIGRATION_DB_URI = data.get("MIGRATION_DB_URI", "sqlite:///./solar_ledger.db")
    API_PREFIX = data.get("API_PREFIX", "/api")
    API_PORT = data.get("API_PORT", 8000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")
    ENABLE_LOGGING_MIDDLEWARE = bool(data.get("ENABLE_LOGGING_MIDDLEWARE", 1))
    ENABLE_SENTRY = data.get("ENABLE_SENTRY", 0)
    DSN_SENTRY = data.get("DSN_SENTRY", "")
    SENTRY_ENVIRONMENT = data.get("SENTRY_ENVIRONMENT", "dev")

    # Energy credit rules
    CREDIT_VALIDITY_MONTHS = int(data.get("CREDIT_VALIDITY_MONTHS", 60))  # Months a monthly bucket stays usable
    EXPIRATION_WARNING_DAYS = data.get("EXPIRATION_WARNING_DAYS", [15, 30, 60])

    # Billing
    UNIT_PRICE_PER_KWH = data.get("UNIT_PRICE_PER_KWH", "0.95")  # Currency units per kWh
    INVOICE_DUE_DAYS = int(data.get("INVOICE_DUE_DAYS", 10))  # Days after month close

    # Monthly Allocation
    MONTHLY_ALLOCATION_ENABLED = bool(data.get("MONTHLY_ALLOCATION_ENABLED", True))

    # Expiration Sweep
    EXPIRATION_SWEEP_ENABLED = bool(data.get("EXPIRATION_SWEEP_ENABLED", True))
    EXPIRATION_SWEEP_INTERVAL_SECONDS = data.get("EXPIRATION_SWEEP_INTERVAL_SECONDS", 21600)  # 4x per day

    # Invoice Generation
    INVOICE_GENERATION_ENABLED = bool(data.get("INVOICE_GENERATION_ENABLED", True))
    INVOICE_GENERATION_INTERVAL_SECONDS = data.get("INVOICE_GENERATION_INTERVAL_SECONDS", 86400)  # Daily

    # Ledger Verification
    LEDGER_VERIFICATION_ENABLED = bool(data.get("LEDGER_VERIFICATION_ENABLED", True))
    LEDGER_VERIFICATION_INTERVAL_SECONDS = data.get("LEDGER_VERIFICATION_INTERVAL_SECONDS", 86400)  # Daily

    # Event delivery (outbox)
    EVENT_WEBHOOK_URL = data.get("EVENT_WEBHOOK_URL", None)
    EVENT_DISPATCH_INTERVAL_SECONDS = data.get("EVENT_DISPATCH_INTERVAL_SECONDS", 30)
    EVENT_DISPATCH_BATCH_SIZE = data.get("EVENT_DISPATCH_BATCH_SIZE", 100)
    EVENT_MAX_DELIVERY_ATTEMPTS = data.get("EVENT_MAX_DELIVERY_ATTEMPTS", 10)
