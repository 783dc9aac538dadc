"""
Runtime configuration for the DevCamper API.

Every setting is read from the environment once at import time. Code that
needs a setting reads it as ``config.NAME`` when called so it can be
overridden in tests.
"""
import os

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
PORT = int(os.getenv("PORT", 8000))
API_PREFIX = os.getenv("API_PREFIX", "/api/v1")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "devcamper")

# Auth
JWT_SECRET = os.getenv("JWT_SECRET", "dev_secret_change_me")
JWT_ALG = "HS256"
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", 60 * 24))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 10))
RESET_TOKEN_EXPIRE_MINUTES = 10

# Mail
SMTP_HOST = os.getenv("SMTP_HOST", "sandbox.smtp.mailtrap.io")
SMTP_PORT = int(os.getenv("SMTP_PORT", 2525))
SMTP_EMAIL = os.getenv("SMTP_EMAIL")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
FROM_EMAIL = os.getenv("FROM_EMAIL", "noreply@devcamper.io")
FROM_NAME = os.getenv("FROM_NAME", "DevCamper")

# Geocoding
GEOCODER_PROVIDER = os.getenv("GEOCODER_PROVIDER", "mapquest")
GEOCODER_API_KEY = os.getenv("GEOCODER_API_KEY")

# Uploads
MAX_FILE_UPLOAD = int(os.getenv("MAX_FILE_UPLOAD", 1_000_000))
FILE_UPLOAD_PATH = os.getenv("FILE_UPLOAD_PATH", "./public/uploads")
