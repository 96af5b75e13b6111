"""Application configuration and constants."""
import os
from pathlib import Path

# Directory paths
BASE_DIR = Path(__file__).resolve().parent.parent
DATABASE_PATH = Path(os.environ.get("SHAREGATE_DATABASE_PATH", str(BASE_DIR / "sharegate.db")))

# Logging
LOG_LEVEL = os.environ.get("SHAREGATE_LOG_LEVEL", "INFO").upper()

# Session configuration
SESSION_COOKIE = "sharegate_session"
SESSION_MAX_AGE = 60 * 60 * 24 * 7  # 7 days

# Share link query parameters
SHARE_PARAM = "share"
PIN_PARAM = "h"
TOKEN_TYPE_PARAM = "t"
PERSON_TOKEN_TYPE = "p"

# Share tokens
DEFAULT_TOKEN_LIFETIME_MONTHS = 8
PIN_MIN_LENGTH = 4
PIN_MAX_LENGTH = 8

# Blob storage
# Set via SHAREGATE_STORAGE_BACKEND: "local" (default) or "s3"
STORAGE_BACKEND = os.environ.get("SHAREGATE_STORAGE_BACKEND", "local").lower()
STORAGE_PATH = Path(os.environ.get("SHAREGATE_STORAGE_PATH", str(BASE_DIR / "blobs")))
SIGNED_URL_TTL = int(os.environ.get("SHAREGATE_SIGNED_URL_TTL", "3600"))
SIGNING_SECRET = os.environ.get("SHAREGATE_SIGNING_SECRET", "dev-signing-secret-change-me")

# Upload limits
MAX_UPLOAD_SIZE = int(os.environ.get("SHAREGATE_MAX_UPLOAD_SIZE", str(200 * 1024 * 1024)))
