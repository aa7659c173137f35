"""
Application settings read from the environment (and a local .env file).
"""

import os
from dotenv import load_dotenv

load_dotenv()

ENVIRONMENTS = ("development", "production", "testing")
PRODUCTION_DB_KEYS = ("USER", "PASSWORD", "HOST", "PORT", "NAME")


def _database_url(environment: str) -> str:
    if environment == "testing":
        return "sqlite:///:memory:"
    if environment == "development":
        return os.getenv("DEVELOPMENT_DATABASE_URL", "sqlite:///./petagri.db")

    values = {key: os.getenv(f"PRODUCTION_DB_{key}") for key in PRODUCTION_DB_KEYS}
    missing = [f"PRODUCTION_DB_{key}" for key, value in values.items() if not value]
    if missing:
        raise ValueError(f"Missing production database config: {missing}")
    return (
        f"postgresql://{values['USER']}:{values['PASSWORD']}"
        f"@{values['HOST']}:{values['PORT']}/{values['NAME']}"
    )


class Settings:
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
    if ENVIRONMENT not in ENVIRONMENTS:
        raise ValueError(f"Invalid ENVIRONMENT: {ENVIRONMENT} (expected one of {', '.join(ENVIRONMENTS)})")

    # Signs access tokens; there is deliberately no fallback value
    SECRET_KEY = os.getenv("SECRET_KEY")
    if not SECRET_KEY:
        raise ValueError("SECRET_KEY is not set. Generate one with: openssl rand -hex 32")

    ALGORITHM = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))

    DATABASE_URL = _database_url(ENVIRONMENT)

    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:8081").split(",") if o.strip()]

    # Field photos land in UPLOAD_ROOT/<kind>/ and are served under /uploads
    UPLOAD_ROOT = os.getenv("UPLOAD_ROOT", "tmp/uploads")
    MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "5"))

    # Roles that see and manage everything
    ADMIN_ROLES = ("developer", "owner_platform", "admin_platform")


settings = Settings()
