import os
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file) or dict()
else:
    data = dict()


class ApplicationConfig:
    ENVIRONMENT = data.get("ENVIRONMENT", "development")
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./nestguard.db")
    API_PREFIX = data.get("API_PREFIX", "/api")
    API_PORT = data.get("API_PORT", 3000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")

    JWT_SECRET = data.get("JWT_SECRET", "dev-secret-key-change-in-production")
    ACCESS_TOKEN_TTL_MINUTES = int(data.get("ACCESS_TOKEN_TTL_MINUTES", 15))

    # CSRF double-submit tokens
    CSRF_TOKEN_TTL_SECONDS = int(data.get("CSRF_TOKEN_TTL_SECONDS", 24 * 60 * 60))
    CSRF_MAX_TOKENS_PER_SESSION = int(data.get("CSRF_MAX_TOKENS_PER_SESSION", 5))
    CSRF_SINGLE_USE = bool(data.get("CSRF_SINGLE_USE", False))
    CSRF_SWEEP_INTERVAL_SECONDS = int(data.get("CSRF_SWEEP_INTERVAL_SECONDS", 60 * 60))
    CSRF_SWEEP_BATCH_SIZE = int(data.get("CSRF_SWEEP_BATCH_SIZE", 500))
    CSRF_COOKIE_NAME = data.get("CSRF_COOKIE_NAME", "csrf-secret")
    CSRF_COOKIE_SECURE = bool(data.get("CSRF_COOKIE_SECURE", ENVIRONMENT == "production"))
    # None keeps the built-in exemption table
    CSRF_EXEMPT_ROUTES = data.get("CSRF_EXEMPT_ROUTES")

    # Credentials
    BCRYPT_ROUNDS = int(data.get("BCRYPT_ROUNDS", 12))
    PASSWORD_HISTORY_LIMIT = int(data.get("PASSWORD_HISTORY_LIMIT", 3))
    PASSWORD_MAX_AGE_DAYS = int(data.get("PASSWORD_MAX_AGE_DAYS", 90))
    OTP_SECRET = data.get("OTP_SECRET", "dev-otp-secret-change-in-production")
    OTP_LENGTH = int(data.get("OTP_LENGTH", 6))
    OTP_TTL_MINUTES = int(data.get("OTP_TTL_MINUTES", 10))
    RESET_TOKEN_TTL_MINUTES = int(data.get("RESET_TOKEN_TTL_MINUTES", 60))
    OTP_MAX_FAILURES = int(data.get("OTP_MAX_FAILURES", 5))

    # Failed-attempt throttling, per client IP and per email
    LOGIN_RATE_LIMIT = data.get("LOGIN_RATE_LIMIT", "5 per 15 minutes")
    OTP_RATE_LIMIT = data.get("OTP_RATE_LIMIT", "5 per 5 minutes")

    # Client security agent
    CLIENT_BASE_URL = data.get("CLIENT_BASE_URL", "https://localhost:3000")
    CLIENT_TOKEN_REFRESH_SECONDS = int(data.get("CLIENT_TOKEN_REFRESH_SECONDS", 30 * 60))
    CLIENT_TIMEOUT_SECONDS = float(data.get("CLIENT_TIMEOUT_SECONDS", 15))
    CLIENT_MAX_TOKEN_FAILURES = int(data.get("CLIENT_MAX_TOKEN_FAILURES", 3))
