"""
Application configuration and constants for the Campus Bus API Server.

This module centralizes environment-based configuration, resource limits,
booking rules, lock timeouts, timezones, and other constants.

Configuration values can be overridden via environment variables.
"""

from os import environ
from zoneinfo import ZoneInfo


# ---------------------------------------------------------------------------
# Application metadata
# ---------------------------------------------------------------------------
API_TITLE = "Campus Bus API Server"
API_VERSION = "1.0.0"


# ---------------------------------------------------------------------------
# PostgreSQL configuration
# ---------------------------------------------------------------------------
PSQL_DB_DRIVER = environ.get("PSQL_DB_DRIVER", "postgresql")
PSQL_DB_USERNAME = environ.get("PSQL_DB_USERNAME", "postgres")
PSQL_DB_PORT = environ.get("PSQL_DB_PORT", "5432")
PSQL_DB_PASSWORD = environ.get("PSQL_DB_PASSWORD", "password")
PSQL_DB_HOST = environ.get("PSQL_DB_HOST", "localhost")
PSQL_DB_NAME = environ.get("PSQL_DB_NAME", "postgres")
# A complete SQLAlchemy URL, takes precedence over the PSQL_DB_* values
DB_URL = environ.get("DB_URL")


# ---------------------------------------------------------------------------
# OpenObserve configuration
# ---------------------------------------------------------------------------
OPENOBSERVE_PROTOCOL = environ.get("OPENOBSERVE_PROTOCOL", "http")
OPENOBSERVE_HOST = environ.get("OPENOBSERVE_HOST", "localhost")
OPENOBSERVE_PORT = environ.get("OPENOBSERVE_PORT", "5080")
OPENOBSERVE_USERNAME = environ.get("OPENOBSERVE_USERNAME", "admin@campusbus.in")
OPENOBSERVE_PASSWORD = environ.get("OPENOBSERVE_PASSWORD", "password")
OPENOBSERVE_ORG = environ.get("OPENOBSERVE_ORG", "campus")
OPENOBSERVE_STREAM = environ.get("OPENOBSERVE_STREAM", "campus-bus-server")


# ---------------------------------------------------------------------------
# Redis configuration
# ---------------------------------------------------------------------------
REDIS_HOST = environ.get("REDIS_HOST", "localhost")
REDIS_PORT = environ.get("REDIS_PORT", "6379")
REDIS_PASSWORD = environ.get("REDIS_PASSWORD", "password")


# ---------------------------------------------------------------------------
# MinIO configuration
# ---------------------------------------------------------------------------
MINIO_HOST = environ.get("MINIO_HOST", "localhost")
MINIO_PORT = environ.get("MINIO_PORT", "9000")
MINIO_USERNAME = environ.get("MINIO_USERNAME", "minio")
MINIO_PASSWORD = environ.get("MINIO_PASSWORD", "password")

# MinIO buckets
INCIDENT_PICTURES = "incident-pictures"


# ---------------------------------------------------------------------------
# Resource upper limits
# ---------------------------------------------------------------------------
MAX_STUDENT_TOKENS = 3  # Maximum tokens per student
MAX_OPERATOR_TOKENS = 5  # Maximum tokens per operator
MAX_TOKEN_VALIDITY = 7 * 24 * 60 * 60  # Token validity (in seconds, 7 days)
MAX_INCIDENT_PICTURE_SIZE = 5 * 1024 * 1024  # Decoded photo size (5 MB)
INCIDENT_PICTURE_RESOLUTION = 1280  # Longest side of a stored photo (in px)


# ---------------------------------------------------------------------------
# Student account rules
# ---------------------------------------------------------------------------
ALLOWED_EMAIL_DOMAIN = environ.get("ALLOWED_EMAIL_DOMAIN", "@lnmiit.ac.in")
MAX_PENALTY_COUNT = int(environ.get("MAX_PENALTY_COUNT", "3"))


# ---------------------------------------------------------------------------
# Regex constants (input validation)
# ---------------------------------------------------------------------------
REGEX_EMPLOYEE_ID = r"^[a-zA-Z0-9][a-zA-Z0-9-_]*$"
REGEX_PASSWORD = r"^[a-zA-Z0-9-+,.@_$%&*#!^=/?]*$"
REGEX_BUS_NUMBER = r"^[A-Z0-9][A-Z0-9 -]*$"


# ---------------------------------------------------------------------------
# Timezone constants
# ---------------------------------------------------------------------------
TMZ_SECONDARY = ZoneInfo(environ.get("CAMPUS_TIMEZONE", "Asia/Kolkata"))


# ---------------------------------------------------------------------------
# Redis mutex lock constants
# ---------------------------------------------------------------------------
MUTEX_LOCK_TIMEOUT = 10  # Lock timeout (in seconds)
MUTEX_LOCK_MAX_WAIT_TIME = 5  # Max blocking wait time (in seconds)
LOCK_RETRY_AFTER = 1  # Retry-After hint on lock contention (in seconds)


# ---------------------------------------------------------------------------
# QR token constants
# ---------------------------------------------------------------------------
QR_TOKEN_VERSION = 1  # Current QR token format version
QR_NONCE_SIZE = 8  # Random bytes mixed into every token (in bytes)
